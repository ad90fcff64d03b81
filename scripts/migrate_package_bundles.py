import sqlite3
import os

# Resolve DB path relative to repo root
ROOT_DIR = os.path.dirname(os.path.dirname(__file__))
DB_PATH = os.path.join(ROOT_DIR, 'data', 'clinic.db')

conn = sqlite3.connect(DB_PATH)
c = conn.cursor()

c.execute("PRAGMA table_info('packages')")
cols = [r[1] for r in c.fetchall()]
print("Existing columns:", cols)

if 'bundle_id' not in cols:
    c.execute("ALTER TABLE packages ADD COLUMN bundle_id INTEGER REFERENCES packages(id)")
    c.execute("CREATE INDEX IF NOT EXISTS ix_packages_bundle_id ON packages (bundle_id)")
    print("Added 'bundle_id' column to 'packages'.")
else:
    print("'bundle_id' already exists.")

# Older purchases stay unbundled; payments on them settle one package each
conn.commit()
conn.close()
print("Migration complete.")
