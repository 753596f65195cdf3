# FILE: driftpin/messages/samples.py
"""
Sample data for development and demos.

Scatters a handful of neighbourhood-board messages within roughly a kilometre
of a centre point, each with a few canned replies.
"""

import logging
import random
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from driftpin.geo import validate_coordinates
from driftpin.messages import lifetime
from driftpin.messages.store import MessageStore, StoredMessage, StoredReply

logger = logging.getLogger(__name__)

SAMPLE_TOPICS = [
    "Lost dog",
    "Community meetup",
    "Free furniture",
    "Road closure",
    "Power outage",
    "Yard sale",
    "Missing cat",
    "Local event",
    "Food truck",
    "Noise complaint",
    "Found keys",
    "Bike stolen",
    "New restaurant",
    "Street cleaning",
    "Free plants",
]

SAMPLE_CONTENTS = [
    "Has anyone seen my dog? Golden retriever, answers to Max.",
    "Community meetup this Saturday at the park. Everyone welcome!",
    "Free furniture on the curb, first come first served.",
    "Road closed due to construction until Friday.",
    "Power outage reported in the area. Anyone else affected?",
    "Yard sale this weekend, lots of great items!",
    "Missing cat, orange tabby with white paws. Please call if found.",
    "Local band playing at the coffee shop tonight. No cover charge.",
    "Food truck festival downtown this weekend. Over 20 vendors!",
    "Loud music coming from the apartment building on Oak St. Anyone else hearing this?",
    "Found keys near the bus stop. DM me to identify.",
    "My bike was stolen from outside the library. Blue mountain bike with a black basket.",
    "New Thai restaurant opened on Main St. Has anyone tried it yet?",
    "Street cleaning scheduled for tomorrow. Remember to move your cars!",
    "Giving away plant cuttings. Message me if interested.",
]

SAMPLE_REPLIES = [
    "Thanks for sharing!",
    "I saw this earlier today.",
    "Has anyone else noticed this?",
    "This is really helpful information.",
    "I'll check it out, thanks!",
    "Is this still available?",
    "What time does this start?",
    "I had a similar experience yesterday.",
    "Can you provide more details?",
    "I'll be there!",
]

# 0.01 degrees is roughly a kilometre
SAMPLE_SPREAD_DEGREES = 0.01
MAX_SAMPLE_REPLIES = 5


def generate_sample_messages(
    store: MessageStore,
    center_lat: float,
    center_lng: float,
    count: Optional[int] = None,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> List[StoredMessage]:
    """
    Create `count` sample messages (10-15 when omitted) around a centre.

    Posting times are spread over the last 12 hours so the decay colours vary.
    """
    center_lat, center_lng = validate_coordinates(center_lat, center_lng)
    rng = rng or random.Random()
    now = now or lifetime.utcnow()
    if count is None:
        count = rng.randint(10, 15)

    created: List[StoredMessage] = []
    for _ in range(count):
        lat = center_lat + rng.uniform(-SAMPLE_SPREAD_DEGREES, SAMPLE_SPREAD_DEGREES)
        lng = center_lng + rng.uniform(-SAMPLE_SPREAD_DEGREES, SAMPLE_SPREAD_DEGREES)
        lat = max(-90.0, min(90.0, lat))
        lng = max(-180.0, min(180.0, lng))

        posted_at = now - timedelta(hours=rng.uniform(0, 12))
        expires_at = lifetime.compute_expires_at(posted_at)

        replies = []
        reply_time = posted_at
        for _ in range(rng.randint(0, MAX_SAMPLE_REPLIES)):
            reply_time = min(now, reply_time + timedelta(minutes=rng.uniform(1, 60)))
            replies.append(StoredReply(
                id=uuid.uuid4().hex,
                content=rng.choice(SAMPLE_REPLIES),
                created_at=reply_time,
            ))
            if expires_at > reply_time:
                expires_at = lifetime.extend_on_reply(posted_at, expires_at, reply_time)

        message = StoredMessage(
            id=uuid.uuid4().hex,
            header=rng.choice(SAMPLE_TOPICS),
            content=rng.choice(SAMPLE_CONTENTS),
            lat=lat,
            lng=lng,
            created_at=posted_at,
            expires_at=expires_at,
            replies=replies,
        )
        created.append(store.save_message(message))

    logger.info(f"[samples] Generated {len(created)} sample messages around ({center_lat}, {center_lng})")
    return created


__all__ = [
    "SAMPLE_TOPICS",
    "SAMPLE_CONTENTS",
    "SAMPLE_REPLIES",
    "generate_sample_messages",
]
