"""
DynamoDB Database Adapter

Reads and writes the hotel document that holds every reservation. Each hotel
account owns one item keyed by (account, document); the reservations live in
its "reservation" list attribute.

The kiosk only performs single-item reads and a last-write-wins update of
the reservation list.
"""

import logging
from decimal import Decimal

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

from .errors import ReservationStoreError

logger = logging.getLogger(__name__)

_table = None


def get_table():
    """Get the configured reservations table (created once per process)."""
    global _table
    if _table is None:
        dynamodb = boto3.resource('dynamodb', region_name=settings.AWS_REGION)
        _table = dynamodb.Table(settings.RESERVATIONS_TABLE)
    return _table


def _from_dynamo(value):
    """DynamoDB returns numbers as Decimal; convert back to int/float."""
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def _to_dynamo(value):
    """DynamoDB rejects floats; store them as Decimal."""
    if isinstance(value, list):
        return [_to_dynamo(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_dynamo(v) for k, v in value.items()}
    if isinstance(value, float):
        return Decimal(str(value))
    return value


def load_hotel_document(account, document):
    """
    Fetch the hotel document.

    Returns the item as a dict or None when it does not exist.
    """
    try:
        response = get_table().get_item(Key={'account': account, 'document': document})
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Error fetching hotel document {account}/{document}: {e}")
        raise ReservationStoreError('read', e) from e

    item = response.get('Item')
    if item is None:
        logger.warning(f"Hotel document {account}/{document} does not exist")
        return None
    return _from_dynamo(item)


def save_reservations(account, document, reservations):
    """Overwrite the reservation list of the hotel document."""
    try:
        get_table().update_item(
            Key={'account': account, 'document': document},
            UpdateExpression='SET #r = :r',
            ExpressionAttributeNames={'#r': 'reservation'},
            ExpressionAttributeValues={':r': _to_dynamo(list(reservations))},
        )
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Error saving reservations for {account}/{document}: {e}")
        raise ReservationStoreError('write', e) from e
    logger.info(f"Saved {len(reservations)} reservations to {account}/{document}")
