import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from sqlalchemy import inspect

from app.database import engine

REQUIRED = [
    "certificate_templates",
    "generated_certificates",
    "certificate_generation_log",
    "registration_counters",
]


def main():
    tables = inspect(engine).get_table_names()
    print('tables:', tables)
    missing = [name for name in REQUIRED if name not in tables]
    if missing:
        print('missing (run alembic upgrade head):', missing)
        sys.exit(1)

if __name__ == '__main__':
    main()
