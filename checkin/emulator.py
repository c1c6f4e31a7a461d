"""
In-memory hotel document store.

Used when no DynamoDB table is configured (development, tests). Mirrors the
shape of the hosted store: one document per (account, document) pair, each
holding a "reservation" list.
"""

import copy
import json
import logging
import threading

logger = logging.getLogger(__name__)

_lock = threading.Lock()

# (account, document) -> document dict
documents = {}


def load_hotel_document(account, document):
    with _lock:
        doc = documents.get((account, document))
        return copy.deepcopy(doc) if doc is not None else None


def save_reservations(account, document, reservations):
    with _lock:
        doc = documents.setdefault((account, document), {})
        doc['reservation'] = copy.deepcopy(list(reservations))


def seed(account, document, reservations):
    """Replace the reservation list of a document."""
    save_reservations(account, document, reservations)
    logger.info(f"Seeded {len(reservations)} reservations into {account}/{document}")


def reset():
    with _lock:
        documents.clear()


def load_fixture(path, account=None, document=None):
    """
    Seed the default hotel document from a JSON file.

    The file holds either a list of reservations or an object with a
    "reservation" list.
    """
    from django.conf import settings

    account = account or settings.HOTEL_ACCOUNT
    document = document or settings.HOTEL_DOCUMENT

    try:
        with open(path, encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Could not load reservations fixture {path}: {e}")
        return 0

    reservations = data.get('reservation', []) if isinstance(data, dict) else data
    seed(account, document, reservations)
    return len(reservations)
