"""
Create the HR tables and load sample vacation data through the Data API.

Safe to run on every deployment.
"""

import logging
import os

import boto3

logger = logging.getLogger()
logger.setLevel(logging.INFO)

rds_data = boto3.client("rds-data")

STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS employees (
        employee_id INTEGER PRIMARY KEY,
        employee_name VARCHAR(100) NOT NULL,
        employee_job_title VARCHAR(100),
        employee_start_date DATE,
        employee_employment_status VARCHAR(20)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS vacations (
        employee_id INTEGER REFERENCES employees (employee_id),
        year INTEGER NOT NULL,
        employee_total_vacation_days INTEGER NOT NULL,
        employee_vacation_days_taken INTEGER NOT NULL,
        employee_vacation_days_available INTEGER NOT NULL,
        PRIMARY KEY (employee_id, year)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS planned_vacations (
        employee_id INTEGER REFERENCES employees (employee_id),
        vacation_start_date DATE NOT NULL,
        vacation_end_date DATE NOT NULL
    )
    """,
    """
    INSERT INTO employees VALUES
        (1, 'Alice Smith', 'Software Engineer', '2021-03-01', 'Active'),
        (2, 'Bob Jones', 'Product Manager', '2019-07-15', 'Active'),
        (3, 'Carol White', 'Designer', '2022-01-10', 'Active')
    ON CONFLICT (employee_id) DO NOTHING
    """,
    """
    INSERT INTO vacations VALUES
        (1, 2024, 20, 5, 15),
        (2, 2024, 25, 10, 15),
        (3, 2024, 20, 0, 20)
    ON CONFLICT (employee_id, year) DO NOTHING
    """,
]


def handler(event, context):
    for sql in STATEMENTS:
        rds_data.execute_statement(
            resourceArn=os.environ["CLUSTER_ARN"],
            secretArn=os.environ["SECRET_ARN"],
            database=os.environ.get("DATABASE_NAME", "employeedatabase"),
            sql=sql,
        )
    logger.info("Sample HR data loaded (%d statements)", len(STATEMENTS))
    return {"status": "ok"}
