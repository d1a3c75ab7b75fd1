import argparse
import json
import sys

from coursebot.validation import validate_tasks

def _load_json(path: str):
    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)

def validate(path: str, strict: bool = False) -> int:
    try:
        data = _load_json(path)
    except (OSError, ValueError) as exc:
        print(f"ERROR: {path}: {exc}")
        return 1
    issues = validate_tasks(data)
    errors = 0
    for issue in issues:
        where = []
        if issue.item_index is not None:
            where.append(f"item {issue.item_index}")
        if issue.task_id is not None:
            where.append(f"id={issue.task_id}")
        if issue.lesson_num is not None:
            where.append(f"lesson={issue.lesson_num}")
        prefix = f"{', '.join(where)}: " if where else ""
        print(f"{issue.severity.upper()}: {prefix}{issue.message}")
        if issue.severity == "error" or strict:
            errors += 1
    if errors:
        return 1
    print("OK")
    return 0

def main(argv: list[str]) -> int:
    parser = argparse.ArgumentParser(description="Check a course task file before deploying it.")
    parser.add_argument("path", help="e.g. data/tasks/ru/english-a1.json")
    parser.add_argument("--strict", action="store_true", help="treat warnings as errors")
    args = parser.parse_args(argv)
    return validate(args.path, args.strict)

if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
