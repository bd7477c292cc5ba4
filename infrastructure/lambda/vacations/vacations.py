"""
Action group Lambda for the HR agent.

Answers get_available_vacation_days and reserve_vacation_time calls from
the agent using the Aurora Data API.
"""

import logging
import os

import boto3

logger = logging.getLogger()
logger.setLevel(logging.INFO)

rds_data = boto3.client("rds-data")


def _execute(sql: str, parameters: list[dict]) -> dict:
    return rds_data.execute_statement(
        resourceArn=os.environ["CLUSTER_ARN"],
        secretArn=os.environ["SECRET_ARN"],
        database=os.environ.get("DATABASE_NAME", "employeedatabase"),
        sql=sql,
        parameters=parameters,
    )


def get_available_vacation_days(employee_id: int) -> str:
    result = _execute(
        "SELECT employee_vacation_days_available FROM vacations "
        "WHERE employee_id = :employee_id ORDER BY year DESC LIMIT 1",
        [{"name": "employee_id", "value": {"longValue": employee_id}}],
    )
    records = result.get("records") or []
    if not records:
        return f"No vacation data found for employee {employee_id}"
    return f"Employee {employee_id} has {records[0][0]['longValue']} vacation days available"


def reserve_vacation_time(employee_id: int, start_date: str, end_date: str) -> str:
    _execute(
        "INSERT INTO planned_vacations (employee_id, vacation_start_date, vacation_end_date) "
        "VALUES (:employee_id, CAST(:start_date AS DATE), CAST(:end_date AS DATE))",
        [
            {"name": "employee_id", "value": {"longValue": employee_id}},
            {"name": "start_date", "value": {"stringValue": start_date}},
            {"name": "end_date", "value": {"stringValue": end_date}},
        ],
    )
    return f"Reserved vacation for employee {employee_id} from {start_date} to {end_date}"


def handler(event, context):
    function = event.get("function")
    parameters = {p["name"]: p["value"] for p in event.get("parameters", [])}
    logger.info("Action group invoked: function=%s parameters=%s", function, parameters)

    if function == "get_available_vacation_days":
        body = get_available_vacation_days(int(parameters["employee_id"]))
    elif function == "reserve_vacation_time":
        body = reserve_vacation_time(
            int(parameters["employee_id"]),
            parameters["start_date"],
            parameters["end_date"],
        )
    else:
        body = f"Unknown function: {function}"

    return {
        "messageVersion": event.get("messageVersion", "1.0"),
        "response": {
            "actionGroup": event.get("actionGroup"),
            "function": function,
            "functionResponse": {"responseBody": {"TEXT": {"body": body}}},
        },
        "sessionAttributes": event.get("sessionAttributes", {}),
        "promptSessionAttributes": event.get("promptSessionAttributes", {}),
    }
