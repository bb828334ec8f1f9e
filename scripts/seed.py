"""
Seed service types and a few sample services.
Run after the database exists: python scripts/seed.py [--with-samples]

Re-running is safe: existing service types (by slug) are left alone.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from nearby.core.database import SessionLocal, init_db, transaction
from nearby.models.service import Service, ServiceType
from nearby.services.service_directory import service_directory

logger = logging.getLogger("nearby.seed")

SERVICE_TYPES = [
    ("Restaurant", "restaurant", "Restaurants and dining places", "restaurant"),
    ("Hospital", "hospital", "Hospitals and medical centers", "local_hospital"),
    ("School", "school", "Schools and educational institutions", "school"),
    ("Shopping Mall", "shopping-mall", "Shopping centers and malls", "shopping_cart"),
    ("Park", "park", "Parks and recreational areas", "park"),
    ("Gas Station", "gas-station", "Fuel and gas stations", "local_gas_station"),
    ("Bank", "bank", "Banks and ATMs", "account_balance"),
    ("Pharmacy", "pharmacy", "Pharmacies and drug stores", "local_pharmacy"),
    ("Hotel", "hotel", "Hotels and accommodation", "hotel"),
    ("Gym", "gym", "Gyms and fitness centers", "fitness_center"),
    ("Cafe", "cafe", "Coffee shops and cafes", "local_cafe"),
    ("Supermarket", "supermarket", "Supermarkets and grocery stores", "local_grocery_store"),
]

# Around Hoan Kiem lake, Hanoi
SAMPLE_SERVICES = [
    ("restaurant", "Pho Thin", "Classic beef noodle soup", 21.0253, 105.8555, "pho,noodles,vietnamese", 4.6),
    ("cafe", "Cafe Giang", "Egg coffee since 1946", 21.0334, 105.8530, "coffee,egg coffee", 4.5),
    ("hospital", "Viet Duc Hospital", "University hospital", 21.0287, 105.8461, "emergency,surgery", 4.2),
    ("pharmacy", "Long Chau Pharmacy", "24h pharmacy", 21.0302, 105.8521, "24h,medicine", 4.1),
    ("park", "Ly Thai To Park", "Lakeside square", 21.0279, 105.8535, "outdoor,lake", 4.4),
    ("bank", "Vietcombank Hoan Kiem", "Branch and ATM", 21.0261, 105.8566, "atm,exchange", 3.9),
]


def seed_service_types(db) -> int:
    existing = {slug for (slug,) in db.query(ServiceType.slug).all()}
    created = 0
    with transaction(db):
        for name, slug, description, icon in SERVICE_TYPES:
            if slug in existing:
                continue
            db.add(ServiceType(name=name, slug=slug, description=description, icon=icon, is_active=True))
            created += 1
    return created


def seed_sample_services(db) -> int:
    types = {service_type.slug: service_type.id for service_type in db.query(ServiceType).all()}
    existing = {name for (name,) in db.query(Service.name).all()}
    created = 0
    with transaction(db):
        for slug, name, description, latitude, longitude, tags, rating in SAMPLE_SERVICES:
            if name in existing or slug not in types:
                continue
            db.add(Service(
                service_type_id=types[slug],
                name=name,
                description=description,
                city="Hanoi",
                country="Vietnam",
                latitude=latitude,
                longitude=longitude,
                tags=tags,
                rating=rating,
                status="active",
            ))
            created += 1
    return created


def main():
    parser = argparse.ArgumentParser(description="Seed reference data")
    parser.add_argument("--with-samples", action="store_true", help="also create sample services")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    init_db()
    db = SessionLocal()
    try:
        types_created = seed_service_types(db)
        service_directory.invalidate_service_types()
        logger.info(f"Seeded {types_created} service types")
        if args.with_samples:
            services_created = seed_sample_services(db)
            service_directory.invalidate_service_caches()
            logger.info(f"Seeded {services_created} sample services")
    finally:
        db.close()


if __name__ == "__main__":
    main()
