"""CLI script to import a JSON or CSV question file into a topic.
Usage: python scripts/import_questions.py FILE --topic NAME [--dry-run]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `quizapp` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from quizapp import models, repositories, services
from quizapp.database import engine, create_db_and_tables


def main(path: pathlib.Path, topic_name: str, dry_run: bool = False) -> int:
    """Import `path` into the topic named `topic_name`, creating it if needed.

    Results are printed to stdout for a quick CLI feedback loop.
    """
    if not path.exists():
        print(f'File not found: {path}')
        return 1
    create_db_and_tables()
    with Session(engine) as session:
        topics = repositories.TopicRepository(session)
        topic = topics.get_by_name(topic_name) or topics.create(models.Topic(name=topic_name))
        try:
            result = services.ImportService(session).import_file(path.read_bytes(), path.name, topic.id, dry_run=dry_run)
        except ValueError as e:
            print(f'Error importing {path}: {e}')
            return 1
    print(f'Imported {path} into "{topic_name}": created {result["created"]}, skipped {result["skipped"]}, errors {len(result["errors"])}')
    for err in result['errors']:
        print(f'  item {err["index"]}: {err["error"]}')
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('file', type=pathlib.Path, help='JSON or CSV question file')
    parser.add_argument('--topic', required=True, help='Topic name to import into')
    parser.add_argument('--dry-run', action='store_true', help='Validate without writing')
    args = parser.parse_args()
    sys.exit(main(args.file, args.topic, dry_run=args.dry_run))
