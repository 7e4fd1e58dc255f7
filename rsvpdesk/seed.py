"""Development helpers for populating fake events and RSVPs."""

from __future__ import annotations

import random
from datetime import timedelta

from faker import Faker

from . import crud
from .backends.interfaces import Repository
from .utils import utcnow

_event_types = [
    "Gala",
    "Mixer",
    "Workshop",
    "Dinner",
    "Launch Party",
    "Book Club",
    "Picnic",
    "Fundraiser",
]
_diets = ["", "", "", "vegetarian", "vegan", "gluten-free", "no nuts", "halal"]
_responses = ["yes", "yes", "yes", "maybe", "no"]


def seed_fake_data(
    repository: Repository,
    *,
    event_count: int = 12,
    max_rsvps_per_event: int = 6,
    past_percentage: int = 30,
    seed: int | None = None,
) -> dict[str, int]:
    """Insert fake events (some already past) and RSVPs for each of them."""
    fake = Faker()
    rng = random.Random(seed)
    if seed is not None:
        Faker.seed(seed)
    now = utcnow().replace(second=0, microsecond=0)

    for _ in range(event_count):
        days = rng.randint(1, 90)
        if rng.randint(1, 100) <= past_percentage:
            days = -days
        crud.create_event(
            repository,
            title=f"{fake.city()} {rng.choice(_event_types)}",
            date_time=now + timedelta(days=days, hours=rng.randint(0, 12)),
            location=fake.street_address(),
            description=fake.sentence(nb_words=12),
            allow_plus_one=rng.random() < 0.5,
        )

    rsvp_total = 0
    events = crud.list_events(repository)
    for event in events[-event_count:] if event_count else []:
        for _ in range(rng.randint(0, max_rsvps_per_event)):
            response = rng.choice(_responses)
            crud.create_rsvp(
                repository,
                event_id=event.id,
                name=fake.name(),
                email=fake.email(),
                response=response,
                plus_one=event.allow_plus_one and response == "yes" and rng.random() < 0.4,
                dietary_preferences=rng.choice(_diets),
            )
            rsvp_total += 1

    return {"events": event_count, "rsvps": rsvp_total}
