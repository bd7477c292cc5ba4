"""
Action group Lambda for the restaurant agent.

Reads, creates and deletes table bookings in DynamoDB.
"""

import logging
import os
import uuid

import boto3

logger = logging.getLogger()
logger.setLevel(logging.INFO)

table = boto3.resource("dynamodb").Table(os.environ["BOOKINGS_TABLE_NAME"])


def get_booking_details(booking_id: str) -> str:
    item = table.get_item(Key={"booking_id": booking_id}).get("Item")
    if item is None:
        return f"Booking {booking_id} not found"
    return (
        f"Booking {booking_id}: {item['name']}, {item['num_guests']} guests "
        f"on {item['date']} at {item['hour']}"
    )


def create_booking(date: str, name: str, hour: str, num_guests: int) -> str:
    booking_id = uuid.uuid4().hex[:8]
    table.put_item(Item={
        "booking_id": booking_id,
        "date": date,
        "name": name,
        "hour": hour,
        "num_guests": num_guests,
    })
    return f"Booking created with ID {booking_id}"


def delete_booking(booking_id: str) -> str:
    table.delete_item(Key={"booking_id": booking_id})
    return f"Booking {booking_id} deleted"


def handler(event, context):
    function = event.get("function")
    parameters = {p["name"]: p["value"] for p in event.get("parameters", [])}
    logger.info("Action group invoked: function=%s", function)

    if function == "get_booking_details":
        body = get_booking_details(parameters["booking_id"])
    elif function == "create_booking":
        body = create_booking(
            parameters["date"],
            parameters["name"],
            parameters["hour"],
            int(parameters["num_guests"]),
        )
    elif function == "delete_booking":
        body = delete_booking(parameters["booking_id"])
    else:
        body = f"Unknown function: {function}"

    return {
        "messageVersion": event.get("messageVersion", "1.0"),
        "response": {
            "actionGroup": event.get("actionGroup"),
            "function": function,
            "functionResponse": {"responseBody": {"TEXT": {"body": body}}},
        },
    }
