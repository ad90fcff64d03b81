import sqlite3, os
ROOT = os.path.dirname(os.path.dirname(__file__))
DB = os.path.join(ROOT, 'data', 'clinic.db')
print('DB:', DB, 'exists:', os.path.exists(DB))
con = sqlite3.connect(DB)
cur = con.cursor()
for table in ('staff', 'patients', 'treatments', 'packages', 'visits', 'visit_treatments', 'stock_items', 'visit_consumables', 'appointments'):
    cur.execute(f"SELECT COUNT(*) FROM {table}")
    print(f'{table}:', cur.fetchone()[0])
cur.execute("SELECT id, patient_id, visit_number, current_status, is_locked, consent_signed, vitals_completed, completed_date FROM visits ORDER BY id DESC LIMIT 10")
for r in cur.fetchall():
    print(r)
cur.execute("SELECT id, patient_id, treatment_id, sessions_remaining, sessions_purchased, status, payment_status FROM packages ORDER BY id DESC LIMIT 10")
for r in cur.fetchall():
    print(r)
con.close()
