"""CLI script to create rooms in the backend DB.

Rooms have no HTTP endpoint, so this is how a dormitory gets its rooms.
Usage: python scripts/seed_rooms.py 101:2 102:3 [--database-url URL]
"""
import argparse
from typing import List, Optional, Tuple
from sqlmodel import Session
from dormitory import models, repositories
from dormitory.config import settings
from dormitory.database import make_engine, create_db_and_tables


def parse_room(spec: str) -> Tuple[str, int]:
    """Parse `NUMBER:CAPACITY` into a `(room_number, capacity)` pair."""
    number, sep, capacity = spec.partition(':')
    if not sep or not number.strip():
        raise argparse.ArgumentTypeError(f'expected NUMBER:CAPACITY, got {spec!r}')
    try:
        cap = int(capacity)
    except ValueError:
        raise argparse.ArgumentTypeError(f'capacity must be an integer in {spec!r}')
    if cap <= 0:
        raise argparse.ArgumentTypeError(f'capacity must be positive in {spec!r}')
    return number.strip(), cap


def seed(rooms: List[Tuple[str, int]], database_url: Optional[str] = None) -> dict:
    """Create tables if needed and insert the rooms that do not exist yet.

    Returns a summary with the room numbers created and skipped.
    """
    engine = make_engine(database_url or settings.DATABASE_URL)
    create_db_and_tables(engine)
    created, skipped = [], []
    with Session(engine) as session:
        repo = repositories.RoomRepository(session)
        for number, capacity in rooms:
            if repo.get_by_number(number) is not None:
                skipped.append(number)
                continue
            repo.create(models.Room(room_number=number, capacity=capacity))
            created.append(number)
        session.commit()
    engine.dispose()
    return {'created': created, 'skipped': skipped}


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description='Create dormitory rooms')
    parser.add_argument('rooms', nargs='+', type=parse_room, help='room as NUMBER:CAPACITY')
    parser.add_argument('--database-url', default=None, help='defaults to DATABASE_URL')
    args = parser.parse_args(argv)
    result = seed(args.rooms, args.database_url)
    print(f"Created rooms: {', '.join(result['created']) or '-'}")
    print(f"Skipped existing: {', '.join(result['skipped']) or '-'}")


if __name__ == '__main__':
    main()
