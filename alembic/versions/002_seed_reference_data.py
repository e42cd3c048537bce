"""Seed reference masters

Revision ID: 002_reference_data
Revises: 001_billing_schema
Create Date: 2026-10-19
"""
from alembic import op
from sqlalchemy.sql import text

# revision identifiers
revision = '002_reference_data'
down_revision = '001_billing_schema'
branch_labels = None
depends_on = None


STATE_NEIGHBORS = [
    ("MH", "GJ"), ("MH", "MP"), ("MH", "CG"), ("MH", "TS"), ("MH", "KA"), ("MH", "GA"),
    ("GJ", "RJ"), ("GJ", "MP"),
    ("KA", "GA"), ("KA", "KL"), ("KA", "TN"), ("KA", "AP"), ("KA", "TS"),
    ("TN", "KL"), ("TN", "AP"),
    ("AP", "TS"), ("AP", "OD"), ("AP", "CG"),
    ("TS", "CG"),
    ("DL", "HR"), ("DL", "UP"),
    ("HR", "PB"), ("HR", "HP"), ("HR", "RJ"), ("HR", "UP"), ("HR", "CH"),
    ("PB", "HP"), ("PB", "RJ"), ("PB", "CH"), ("PB", "JK"),
    ("UP", "UK"), ("UP", "HP"), ("UP", "RJ"), ("UP", "MP"), ("UP", "CG"), ("UP", "JH"), ("UP", "BR"),
    ("RJ", "MP"),
    ("MP", "CG"),
    ("WB", "OD"), ("WB", "JH"), ("WB", "BR"), ("WB", "SK"), ("WB", "AS"),
    ("BR", "JH"),
    ("JH", "OD"), ("JH", "CG"),
    ("OD", "CG"),
]


def upgrade():
    """Insert modes, service types, distance slabs, metro cities, adjacency and weight slabs"""
    conn = op.get_bind()

    # ====================
    # MODES / SERVICE TYPES
    # ====================
    conn.execute(text("""
        INSERT INTO modes (code, title) VALUES
            ('DOCUMENT', 'Document'),
            ('NON_DOCUMENT', 'Non Document')
        ON CONFLICT (code) DO NOTHING
    """))

    conn.execute(text("""
        INSERT INTO service_types (code, title) VALUES
            ('AIR', 'Air'),
            ('SURFACE', 'Surface'),
            ('EXPRESS', 'Express'),
            ('STANDARD', 'Standard'),
            ('PREMIUM', 'Premium')
        ON CONFLICT (code) DO NOTHING
    """))

    # ====================
    # DISTANCE SLABS
    # ====================
    conn.execute(text("""
        INSERT INTO distance_slabs (code, title) VALUES
            ('METRO_CITIES', 'Metro Cities'),
            ('WITHIN_STATE', 'Within State'),
            ('OUT_OF_STATE', 'Out of State'),
            ('OTHER_STATE', 'Other State')
        ON CONFLICT (code) DO NOTHING
    """))

    # ====================
    # METRO CITIES (8 metros)
    # ====================
    conn.execute(text("""
        INSERT INTO metro_cities (city, state_code) VALUES
            ('Mumbai', 'MH'),
            ('Delhi', 'DL'),
            ('Pune', 'MH'),
            ('Bengaluru', 'KA'),
            ('Chennai', 'TN'),
            ('Kolkata', 'WB'),
            ('Hyderabad', 'TS'),
            ('Ahmedabad', 'GJ')
        ON CONFLICT (city) DO NOTHING
    """))

    # ====================
    # STATE ADJACENCY
    # ====================
    for state_code, neighbor_state_code in STATE_NEIGHBORS:
        conn.execute(
            text("""
                INSERT INTO state_neighbors (state_code, neighbor_state_code)
                VALUES (:state_code, :neighbor_state_code)
                ON CONFLICT (state_code, neighbor_state_code) DO NOTHING
            """),
            {"state_code": state_code, "neighbor_state_code": neighbor_state_code},
        )

    # ====================
    # WEIGHT SLABS
    # ====================
    conn.execute(text("""
        INSERT INTO weight_slabs (slab_name, min_weight_grams, max_weight_grams) VALUES
            ('0-100g', 0, 100),
            ('100-250g', 100, 250),
            ('250-500g', 250, 500),
            ('500g-1kg', 500, 1000),
            ('1kg-1.5kg', 1000, 1500),
            ('1.5kg-2kg', 1500, 2000),
            ('2kg-2.5kg', 2000, 2500),
            ('2.5kg-3kg', 2500, 3000)
    """))


def downgrade():
    """Remove seeded reference rows"""
    conn = op.get_bind()
    conn.execute(text("DELETE FROM weight_slabs"))
    conn.execute(text("DELETE FROM state_neighbors"))
    conn.execute(text("DELETE FROM metro_cities"))
    conn.execute(text("DELETE FROM distance_slabs"))
    conn.execute(text("DELETE FROM service_types"))
    conn.execute(text("DELETE FROM modes"))
