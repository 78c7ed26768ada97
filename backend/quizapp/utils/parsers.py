"""File parsing utilities that convert supported file formats into a
normalized question list.

Supported input types: JSON and CSV. Parsers return a list of
dictionaries with keys: `question_text`, `options`, `explanation`,
`points` and `difficulty_level`. Each option carries `option_text`,
`is_correct` and `partial_credit_percentage`.
"""

import io
import json
import csv
from typing import List, Dict, Tuple


def parse_file_to_questions(file_bytes: bytes, filename: str) -> List[Dict]:
    """Dispatch to the appropriate parser based on file extension."""
    name = filename.lower()
    if name.endswith('.json'):
        return parse_json(file_bytes)
    if name.endswith('.csv'):
        return parse_csv(file_bytes)
    raise ValueError('Unsupported file type')


def parse_json(b: bytes):
    """Parse a JSON array of question objects and normalize them.

    A top-level object with a `questions` key is accepted as well.
    """
    data = json.loads(b.decode('utf-8'))
    if isinstance(data, dict):
        data = data.get('questions', [])
    if not isinstance(data, list):
        raise ValueError('expected a JSON array of questions')
    return [normalize_question(item) if isinstance(item, dict) else item for item in data]


def parse_csv(b: bytes):
    """Parse a CSV where a single column contains pipe-separated options.

    Expected columns: `question` or `question_text`, `options` (pipe
    separated) and optional `correct` naming the correct option. Options
    may carry partial credit as `text=40%`. Optional columns `points`,
    `difficulty` and `explanation` are passed through.
    """
    out = []
    sio = io.StringIO(b.decode('utf-8'))
    reader = csv.DictReader(sio)
    for row in reader:
        item = {
            'question_text': str(row.get('question') or row.get('question_text') or ''),
            'options': [],
            'explanation': row.get('explanation') or None,
            'points': _coerce_float(row.get('points')),
            'difficulty_level': _coerce_int(row.get('difficulty') or row.get('difficulty_level')),
        }
        raw = row.get('options') or row.get('answers') or ''
        parts = [p for p in raw.split('|') if p.strip()]
        correct = row.get('correct')
        for p in parts:
            text, partial = _split_partial_credit(p.strip())
            text, marked = _parse_option_marker(text)
            is_correct = marked or (correct is not None and text == str(correct).strip())
            item['options'].append({'option_text': text, 'is_correct': is_correct, 'partial_credit_percentage': partial})
        out.append(item)
    return out


def normalize_question(item: dict) -> dict:
    """Normalize a parsed question object (maps alternative keys to the
    canonical output shape).
    """
    raw_options = item.get('options') or item.get('possible_answers') or item.get('answers') or []
    options = []
    for opt in raw_options:
        if not isinstance(opt, dict):
            options.append(opt)
            continue
        options.append({
            'option_text': opt.get('option_text') or opt.get('text') or opt.get('answer_text') or '',
            'is_correct': bool(opt.get('is_correct') or opt.get('isCorrect')),
            'partial_credit_percentage': _coerce_float(
                opt.get('partial_credit_percentage', opt.get('partialCredit'))
            ) or 0.0,
        })
    return {
        'question_text': item.get('question_text') or item.get('question') or '',
        'options': options,
        'explanation': item.get('explanation') or None,
        'points': _coerce_float(_first_present(item, 'points')),
        'difficulty_level': _coerce_int(_first_present(item, 'difficulty_level', 'difficulty')),
    }


def _first_present(item: dict, *keys):
    """Value of the first key present in `item`, so falsy values like 0 survive."""
    for key in keys:
        if key in item:
            return item[key]
    return None


def _split_partial_credit(text: str) -> Tuple[str, float]:
    """Split a trailing `=NN%` partial credit suffix from an option.

    The percent sign is required so option text such as `1+1=2` is kept whole.
    """
    head, sep, tail = text.rpartition('=')
    tail = tail.strip()
    if sep and tail.endswith('%'):
        value = _coerce_float(tail[:-1])
        if value is not None:
            return head.strip(), value
    return text, 0.0


def _parse_option_marker(text: str) -> Tuple[str, bool]:
    """Detect simple correctness markers in an option.

    Supports a leading '*' or a trailing '(correct)'; falls back to False.
    """
    cleaned = text.strip()
    lower = cleaned.lower()
    for marker in ('(correct)', '[correct]'):
        if lower.endswith(marker):
            return cleaned[: -len(marker)].strip(), True
    if cleaned.startswith('*'):
        return cleaned.lstrip('*').strip(), True
    return cleaned, False


def _coerce_int(val):
    try:
        return int(val) if val is not None and str(val).strip() != '' else None
    except (TypeError, ValueError):
        return None


def _coerce_float(val):
    try:
        return float(val) if val is not None and str(val).strip() != '' else None
    except (TypeError, ValueError):
        return None
