"""
Example stacks built from agent blueprints.

- HRAssistDataStack: Aurora Serverless v2 database with sample HR data
- AgentWithFunctionDefinitionStack: HR agent whose action group runs a Lambda
- AgentWithReturnOfControlStack: HR agent that returns control to the caller
- AgentWithKnowledgeBaseAndGuardrailsStack: restaurant agent with a menu
  knowledge base, a guardrail and a DynamoDB-backed booking Lambda
"""

import time
from pathlib import Path

from constructs import Construct
from aws_cdk import (
    Stack,
    Duration,
    RemovalPolicy,
    CfnOutput,
    Fn,
    aws_dynamodb as dynamodb,
    aws_ec2 as ec2,
    aws_iam as iam,
    aws_lambda as lambda_,
    aws_rds as rds,
    custom_resources as cr,
)

from agent_blueprints import DeploymentContext
from agent_blueprints.builders import (
    ActionGroupExecutor,
    AgentDefinitionBuilder,
    CodeKind,
    FilterType,
    GuardrailBuilder,
    LambdaDefinition,
    ManagedWordsType,
    PIIAction,
    PIIType,
    SchemaDefinition,
)
from agent_blueprints.cdk import (
    AgentActionGroup,
    AgentKnowledgeBase,
    BedrockAgentBlueprint,
    BedrockGuardrail,
)

LAMBDA_DIR = Path(__file__).parent / "lambda"
ASSETS_DIR = Path(__file__).parent / "assets"

FOUNDATION_MODEL = "anthropic.claude-3-sonnet-20240229-v1:0"

HR_INSTRUCTION = (
    "As an HR agent, your role involves assisting employees with a range of HR tasks. "
    "These include managing vacation requests both present and future, "
    "reviewing past vacation usage, tracking remaining vacation days, and addressing general HR inquiries. "
    "You will rely on contextual details provided by users to fulfill their HR needs efficiently. "
    "When discussing dates, always use the YYYY-MM-DD format unless clarified otherwise by the user. "
    "If you are unsure about any details, do not hesitate to ask the user for clarification. "
    "Use \"you\" to address the user directly, making it more personal and actionable. "
    "Make sure the responses are direct, straightforward, and do not contain unnecessary information."
)

VACATION_FUNCTIONS = [
    {
        "name": "get_available_vacation_days",
        "description": "Get the number of vacation days available for a certain employee",
        "parameters": {
            "employee_id": {
                "type": "integer",
                "description": "The ID of the employee to get the available vacations",
                "required": True,
            },
        },
    },
    {
        "name": "reserve_vacation_time",
        "description": "Reserve vacation time for a specific employee - you need all parameters to reserve vacation time",
        "parameters": {
            "employee_id": {
                "type": "integer",
                "description": "The ID of the employee to reserve the vacation time for",
                "required": True,
            },
            "start_date": {
                "type": "string",
                "description": "The start date of the vacation time to reserve",
                "required": True,
            },
            "end_date": {
                "type": "string",
                "description": "The end date of the vacation time to reserve",
                "required": True,
            },
        },
    },
]

BOOKING_FUNCTIONS = [
    {
        "name": "get_booking_details",
        "description": "Retrieve details of a restaurant booking",
        "parameters": {
            "booking_id": {"type": "string", "description": "The ID of the booking to retrieve", "required": True},
        },
    },
    {
        "name": "create_booking",
        "description": "Create a new restaurant booking",
        "parameters": {
            "date": {"type": "string", "description": "The date of the booking", "required": True},
            "name": {"type": "string", "description": "Name to identify your reservation", "required": True},
            "hour": {"type": "string", "description": "The hour of the booking", "required": True},
            "num_guests": {"type": "integer", "description": "The number of guests for the booking", "required": True},
        },
    },
    {
        "name": "delete_booking",
        "description": "Delete an existing restaurant booking",
        "parameters": {
            "booking_id": {"type": "string", "description": "The ID of the booking to delete", "required": True},
        },
    },
]


def deployment_context(stack: Stack) -> DeploymentContext:
    return DeploymentContext(account=stack.account, region=stack.region, partition=stack.partition)


class HRAssistDataStack(Stack):
    """
    Aurora Serverless v2 (PostgreSQL) cluster with the Data API enabled,
    seeded with sample vacation data. Exports the cluster and secret ARNs
    for the HR agent's action group.
    """

    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        vpc = ec2.Vpc(
            self,
            "Vpc",
            max_azs=2,
            nat_gateways=0,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="database",
                    subnet_type=ec2.SubnetType.PRIVATE_ISOLATED,
                    cidr_mask=24,
                ),
            ],
        )

        self.db_secret = rds.DatabaseSecret(self, "AuroraSecret", username="clusteradmin")

        self.db_cluster = rds.DatabaseCluster(
            self,
            "AuroraCluster",
            engine=rds.DatabaseClusterEngine.aurora_postgres(
                version=rds.AuroraPostgresEngineVersion.VER_15_5,
            ),
            cluster_identifier="hr-agent-aurora-cluster",
            default_database_name="employeedatabase",
            credentials=rds.Credentials.from_secret(self.db_secret),
            writer=rds.ClusterInstance.serverless_v2("Writer"),
            serverless_v2_min_capacity=0.5,
            serverless_v2_max_capacity=2,
            enable_data_api=True,
            vpc=vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_ISOLATED),
            removal_policy=RemovalPolicy.DESTROY,
        )

        populate_role = iam.Role(
            self,
            "PopulateDataRole",
            assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
            description="Execution role for the sample data loader",
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name("service-role/AWSLambdaBasicExecutionRole"),
            ],
        )
        self.db_cluster.grant_data_api_access(populate_role)

        populate_function = lambda_.Function(
            self,
            "PopulateSampleDataFunction",
            runtime=lambda_.Runtime.PYTHON_3_12,
            handler="populate.handler",
            code=lambda_.Code.from_asset(str(LAMBDA_DIR / "hr_data")),
            role=populate_role,
            timeout=Duration.minutes(5),
            environment={
                "CLUSTER_ARN": self.db_cluster.cluster_arn,
                "SECRET_ARN": self.db_secret.secret_arn,
                "DATABASE_NAME": "employeedatabase",
            },
        )

        # Re-run the loader on every deployment; the loader is idempotent
        cr.AwsCustomResource(
            self,
            "TriggerPopulateData",
            on_update=cr.AwsSdkCall(
                service="Lambda",
                action="invoke",
                parameters={"FunctionName": populate_function.function_name},
                physical_resource_id=cr.PhysicalResourceId.of(str(int(time.time()))),
            ),
            policy=cr.AwsCustomResourcePolicy.from_statements([
                iam.PolicyStatement(
                    actions=["lambda:InvokeFunction"],
                    resources=[populate_function.function_arn],
                ),
            ]),
        ).node.add_dependency(self.db_cluster)

        CfnOutput(
            self,
            "AuroraClusterArn",
            value=self.db_cluster.cluster_arn,
            export_name="AuroraClusterArn",
            description="The ARN of the Aurora Serverless cluster",
        )
        CfnOutput(
            self,
            "AuroraDatabaseSecretArn",
            value=self.db_secret.secret_arn,
            export_name="AuroraDatabaseSecretArn",
            description="The ARN of the secret for the Aurora Serverless cluster",
        )


class AgentWithFunctionDefinitionStack(Stack):
    """HR agent whose vacation actions run in a Lambda backed by Aurora."""

    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        agent_definition = (
            AgentDefinitionBuilder()
            .with_agent_name("hr-assistant-agent-with-function-definition")
            .with_instruction(HR_INSTRUCTION)
            .with_foundation_model(FOUNDATION_MODEL)
            .with_user_input()
            .build()
        )

        cluster_arn = Fn.import_value("AuroraClusterArn")
        secret_arn = Fn.import_value("AuroraDatabaseSecretArn")

        vacations = AgentActionGroup(
            self,
            "VacationsActionGroup",
            action_group_name="VacationsActionGroup",
            description="Actions for getting the number of available vacations days for an employee and confirm new time off",
            executor=ActionGroupExecutor.from_code(
                LambdaDefinition(
                    code=LAMBDA_DIR / "vacations",
                    code_kind=CodeKind.PACKAGED,
                    handler="vacations.handler",
                    runtime=lambda_.Runtime.PYTHON_3_12,
                    environment={
                        "CLUSTER_ARN": cluster_arn,
                        "SECRET_ARN": secret_arn,
                        "DATABASE_NAME": "employeedatabase",
                    },
                    managed_policies=[
                        iam.ManagedPolicy.from_aws_managed_policy_name("AmazonRDSDataFullAccess"),
                    ],
                    inline_policies={
                        "AllowAccessSecretManagerPolicy": iam.PolicyDocument(
                            statements=[
                                iam.PolicyStatement(
                                    effect=iam.Effect.ALLOW,
                                    actions=["secretsmanager:GetSecretValue"],
                                    resources=[secret_arn],
                                ),
                            ]
                        ),
                    },
                )
            ),
            schema=SchemaDefinition.functions(VACATION_FUNCTIONS),
        )

        BedrockAgentBlueprint(
            self,
            "AgentBlueprint",
            agent_definition=agent_definition,
            context=deployment_context(self),
            action_groups=[vacations],
        )


class AgentWithReturnOfControlStack(Stack):
    """HR agent that hands elicited parameters back to the calling application."""

    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        agent_definition = (
            AgentDefinitionBuilder()
            .with_agent_name("hr-assistant-agent-with-roc")
            .with_instruction(HR_INSTRUCTION)
            .with_foundation_model(FOUNDATION_MODEL)
            .with_user_input()
            .build()
        )

        vacations = AgentActionGroup(
            self,
            "VacationsActionGroup",
            action_group_name="VacationsActionGroup",
            description="Actions for getting the number of available vacations days for an employee and confirm new time off",
            executor=ActionGroupExecutor.return_control(),
            schema=SchemaDefinition.functions(VACATION_FUNCTIONS),
        )

        BedrockAgentBlueprint(
            self,
            "AgentBlueprint",
            agent_definition=agent_definition,
            context=deployment_context(self),
            action_groups=[vacations],
        )


class AgentWithKnowledgeBaseAndGuardrailsStack(Stack):
    """Restaurant agent with a menu knowledge base and a guardrail."""

    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        context = deployment_context(self)

        agent_definition = (
            AgentDefinitionBuilder()
            .with_agent_name("restaurant-assistant-agent-with-kb-and-guardrails")
            .with_instruction(
                "You are a restaurant agent, helping clients retrieve information from their booking, "
                "create a new booking or delete an existing booking"
            )
            .with_foundation_model(FOUNDATION_MODEL)
            .with_user_input()
            .build()
        )

        bookings_table = dynamodb.Table(
            self,
            "BookingsTable",
            partition_key=dynamodb.Attribute(name="booking_id", type=dynamodb.AttributeType.STRING),
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
            removal_policy=RemovalPolicy.DESTROY,
        )

        table_booking = AgentActionGroup(
            self,
            "TableBookingsActionGroup",
            action_group_name="TableBookingsActionGroup",
            description="Actions for getting table booking information, create a new booking or delete an existing booking",
            executor=ActionGroupExecutor.from_code(
                LambdaDefinition(
                    code=LAMBDA_DIR / "table_booking",
                    code_kind=CodeKind.PACKAGED,
                    handler="table_booking.handler",
                    runtime=lambda_.Runtime.PYTHON_3_12,
                    timeout_minutes=4,
                    environment={"BOOKINGS_TABLE_NAME": bookings_table.table_name},
                )
            ),
            schema=SchemaDefinition.functions(BOOKING_FUNCTIONS),
        )
        bookings_table.grant_read_write_data(table_booking.lambda_function)

        guardrail_definition = (
            GuardrailBuilder("restaurant-assistant-guardrail")
            .with_filter(FilterType.INSULTS)
            .with_managed_words(ManagedWordsType.PROFANITY)
            .with_words(["competitor", "confidential", "proprietary"])
            .with_pii(PIIType.US_SOCIAL_SECURITY_NUMBER, PIIAction.ANONYMIZE)
            .with_topic(
                "Avoid Religion",
                "Anything related to religion or religious topics",
                ["religion", "faith", "belief"],
            )
            .build()
        )
        guardrail = BedrockGuardrail(
            self,
            "AgentGuardrail",
            definition=guardrail_definition,
            generate_kms_key=True,
        )

        knowledge_base = AgentKnowledgeBase(
            self,
            "MenuKnowledgeBase",
            kb_name="booking-agent-kb",
            agent_instruction="Access the knowledge base when customers ask about the plates in the menu.",
            context=context,
            asset_files={
                path.name: path.read_bytes()
                for path in sorted((ASSETS_DIR / "kb_documents").iterdir())
                if path.is_file()
            },
        )

        BedrockAgentBlueprint(
            self,
            "AgentBlueprint",
            agent_definition=agent_definition,
            context=context,
            action_groups=[table_booking],
            knowledge_bases=[knowledge_base],
            guardrail=guardrail,
        )
