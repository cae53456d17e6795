"""
Create the recon tables.

    python create_db.py            create missing tables
    python create_db.py --reset    drop and recreate every table
    python create_db.py --seed     also load the demo dealership (see seed_data.py)
"""
import sys
from dotenv import load_dotenv
from pathlib import Path
from sqlalchemy import text

load_dotenv(dotenv_path=Path(__file__).with_name(".env"), override=True)

from recon.db.engine import init_db, engine  # noqa: E402  (needs DATABASE_URL)

def main(argv):
    reset = "--reset" in argv
    print("Dropping and recreating tables…" if reset else "Creating tables…")
    tables = init_db(drop=reset)
    print("  " + ", ".join(tables))

    with engine.connect() as conn:
        stages = conn.execute(text("SELECT count(*) FROM pipeline_stages")).scalar_one()
    print(f"Done. {stages} pipeline stage(s) configured.")

    if "--seed" in argv:
        from seed_data import seed_data
        seed_data()

if __name__ == "__main__":
    main(sys.argv[1:])
