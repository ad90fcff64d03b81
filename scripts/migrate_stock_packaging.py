import sqlite3
import os

# Resolve DB path relative to repo root
ROOT_DIR = os.path.dirname(os.path.dirname(__file__))
DB_PATH = os.path.join(ROOT_DIR, 'data', 'clinic.db')

conn = sqlite3.connect(DB_PATH)
c = conn.cursor()

c.execute("PRAGMA table_info('stock_items')")
cols = [r[1] for r in c.fetchall()]
print("Existing columns:", cols)

for name, ddl in (('packaging_unit', 'VARCHAR'), ('units_per_package', 'FLOAT')):
    if name not in cols:
        c.execute(f"ALTER TABLE stock_items ADD COLUMN {name} {ddl}")
        print(f"Added '{name}' column to 'stock_items'.")
    else:
        print(f"'{name}' already exists.")

# Half-configured rows are treated as unconfigured
c.execute("UPDATE stock_items SET packaging_unit = NULL, units_per_package = NULL "
          "WHERE (packaging_unit IS NULL) <> (units_per_package IS NULL) OR units_per_package <= 0")
print(f"Cleared {c.rowcount} partial packaging row(s).")

conn.commit()
conn.close()
print("Migration complete.")
