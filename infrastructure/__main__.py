"""
MoniFly API stack.

One Lambda per handler, all running from a shared container image, behind
an HTTP API. Protected routes go through the Supabase token authorizer.
Client state (attempt limiter, dark mode, wizard drafts) lives in a single
DynamoDB table with TTL on ``expires_at``.
"""

import json
import os

import pulumi
import pulumi_aws as aws
from components.lambda_function import MoniFlyFunction
from get_image_tag import get_content_hash

config = pulumi.Config()
stage_name = config.get("stage") or "dev"
# Must match PARAMETER_PREFIX in services/parameter_store.py
parameter_prefix = "/monifly"

current = aws.get_caller_identity()
current_region = aws.get_region()

ecr_repository = aws.ecr.Repository(
    "monifly-repo", name="monifly-api", force_delete=True
)

# An image push records its tag here (get_image_tag.py > image_tag.txt);
# without one, hash the sources
tag_file = "image_tag.txt"
if os.path.exists(tag_file):
    with open(tag_file, "r") as f:
        image_tag = f.read().strip()
else:
    image_tag = get_content_hash()

image_uri = ecr_repository.repository_url.apply(lambda url: f"{url}:{image_tag}")

state_table = aws.dynamodb.Table(
    "monifly-state",
    name=f"MoniFlyState-{stage_name}",
    billing_mode="PAY_PER_REQUEST",
    attributes=[
        {"name": "PK", "type": "S"},
        {"name": "SK", "type": "S"},
    ],
    hash_key="PK",
    range_key="SK",
    ttl={"attribute_name": "expires_at", "enabled": True},
)

state_policy = state_table.arn.apply(
    lambda arn: json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Action": [
                        "dynamodb:GetItem",
                        "dynamodb:PutItem",
                        "dynamodb:DeleteItem",
                    ],
                    "Resource": arn,
                }
            ],
        }
    )
)

parameters_policy = pulumi.Output.concat(
    "arn:aws:ssm:",
    current_region.name,
    ":",
    current.account_id,
    ":parameter",
    parameter_prefix,
    "/*",
).apply(
    lambda arn: json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Action": ["ssm:GetParameter", "ssm:GetParametersByPath"],
                    "Resource": arn,
                },
                {
                    "Effect": "Allow",
                    "Action": "kms:Decrypt",
                    "Resource": "*",
                    "Condition": {
                        "StringEquals": {"kms:ViaService": "ssm.*.amazonaws.com"}
                    },
                },
            ],
        }
    )
)

environment_vars = {
    "STATE_TABLE_NAME": state_table.name,
}

# (method, path, handler, protected)
ROUTES = [
    ("GET", "/healthz", "main.healthz", False),
    ("GET", "/auth/form-token", "handlers.auth.form_token", False),
    ("POST", "/auth/login", "handlers.auth.sign_in", False),
    ("POST", "/auth/register", "handlers.auth.sign_up", False),
    ("POST", "/auth/forgot-password", "handlers.auth.request_password_reset", False),
    ("POST", "/auth/update-password", "handlers.auth.update_password", False),
    ("POST", "/auth/logout", "handlers.auth.sign_out", False),
    ("POST", "/auth/refresh", "handlers.auth.refresh_session", False),
    ("GET", "/routes/resolve", "handlers.auth.resolve_route", False),
    ("GET", "/dashboard", "handlers.dashboard.get_dashboard", True),
    ("GET", "/analytics", "handlers.analytics.get_analytics", True),
    ("GET", "/transactions", "handlers.transactions.list_transactions", True),
    ("POST", "/transactions", "handlers.transactions.create_transaction", True),
    (
        "PUT",
        "/transactions/{transaction_id}",
        "handlers.transactions.update_transaction",
        True,
    ),
    (
        "DELETE",
        "/transactions/{transaction_id}",
        "handlers.transactions.delete_transaction",
        True,
    ),
    ("GET", "/debts", "handlers.debts.list_debts", True),
    ("POST", "/debts", "handlers.debts.create_debt", True),
    ("GET", "/debts/{debt_id}", "handlers.debts.get_debt", True),
    ("PUT", "/debts/{debt_id}", "handlers.debts.update_debt", True),
    ("DELETE", "/debts/{debt_id}", "handlers.debts.delete_debt", True),
    ("POST", "/debts/{debt_id}/payments", "handlers.debts.add_payment", True),
    ("POST", "/debts/{debt_id}/mark-paid", "handlers.debts.mark_as_paid", True),
    ("GET", "/goals", "handlers.goals.list_goals", True),
    ("POST", "/goals", "handlers.goals.create_goal", True),
    ("PUT", "/goals/{goal_id}", "handlers.goals.update_goal", True),
    ("DELETE", "/goals/{goal_id}", "handlers.goals.delete_goal", True),
    ("POST", "/goals/{goal_id}/contributions", "handlers.goals.add_contribution", True),
    ("GET", "/profile", "handlers.profile.get_profile", True),
    ("PUT", "/profile", "handlers.profile.update_profile", True),
    ("POST", "/profile/welcome", "handlers.profile.mark_welcome_seen", True),
    ("GET", "/profile/preferences", "handlers.profile.get_preferences", True),
    ("PUT", "/profile/preferences", "handlers.profile.update_preferences", True),
    ("POST", "/wizards/{form}", "handlers.wizards.start_wizard", True),
    ("GET", "/wizards/{form}", "handlers.wizards.get_wizard", True),
    ("PATCH", "/wizards/{form}", "handlers.wizards.update_wizard_fields", True),
    ("DELETE", "/wizards/{form}", "handlers.wizards.discard_wizard", True),
    ("POST", "/wizards/{form}/navigate", "handlers.wizards.navigate_wizard", True),
    ("POST", "/wizards/{form}/submit", "handlers.wizards.submit_wizard", True),
]


def function_name(handler: str) -> str:
    """``handlers.debts.add_payment`` -> ``debts-add-payment``."""
    module, func = handler.split(".")[-2:]
    return f"{module}-{func}".replace("_", "-")


functions = {}
for _, _, handler, _ in ROUTES:
    if handler not in functions:
        functions[handler] = MoniFlyFunction(
            f"monifly-{function_name(handler)}",
            handler=handler,
            image_uri=image_uri,
            environment_vars=environment_vars,
            inline_policies=[state_policy, parameters_policy],
        )

authorizer_function = MoniFlyFunction(
    "monifly-authorizer",
    handler="authorizer.lambda_handler",
    image_uri=image_uri,
    environment_vars=environment_vars,
    inline_policies=[parameters_policy],
)

api = aws.apigatewayv2.Api(
    "monifly-api",
    protocol_type="HTTP",
    cors_configuration={
        "allow_origins": ["*"],
        "allow_headers": ["authorization", "content-type", "x-client-id"],
        "allow_methods": ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        "expose_headers": ["retry-after"],
    },
)

authorizer = aws.apigatewayv2.Authorizer(
    "monifly-authorizer",
    api_id=api.id,
    authorizer_type="REQUEST",
    authorizer_uri=authorizer_function.invoke_arn,
    authorizer_payload_format_version="2.0",
    identity_sources=["$request.header.Authorization"],
    name="supabase-token",
    authorizer_result_ttl_in_seconds=300,
    enable_simple_responses=True,
)

aws.lambda_.Permission(
    "authorizer-permission",
    action="lambda:InvokeFunction",
    function=authorizer_function.name,
    principal="apigateway.amazonaws.com",
    source_arn=pulumi.Output.concat(api.execution_arn, "/authorizers/", authorizer.id),
)

access_logs = aws.cloudwatch.LogGroup(
    "monifly-api-access-logs",
    name=f"/aws/apigateway/monifly-api-{stage_name}",
    retention_in_days=14,
)

stage = aws.apigatewayv2.Stage(
    "monifly-stage",
    api_id=api.id,
    name=stage_name,
    auto_deploy=True,
    access_log_settings={
        "destination_arn": access_logs.arn,
        "format": json.dumps(
            {
                "requestId": "$context.requestId",
                "routeKey": "$context.routeKey",
                "status": "$context.status",
                "error": "$context.error.message",
                "integrationError": "$context.integrationErrorMessage",
            }
        ),
    },
)

integrations = {}
for handler, function in functions.items():
    resource_name = function_name(handler)

    aws.lambda_.Permission(
        f"{resource_name}-permission",
        action="lambda:InvokeFunction",
        function=function.name,
        principal="apigateway.amazonaws.com",
        source_arn=pulumi.Output.concat(api.execution_arn, "/*/*"),
    )

    integrations[handler] = aws.apigatewayv2.Integration(
        f"{resource_name}-integration",
        api_id=api.id,
        integration_type="AWS_PROXY",
        integration_uri=function.invoke_arn,
        integration_method="POST",
        payload_format_version="2.0",
    )

for method, path, handler, protected in ROUTES:
    route_args = {
        "api_id": api.id,
        "route_key": f"{method} {path}",
        "target": pulumi.Output.concat("integrations/", integrations[handler].id),
    }
    if protected:
        route_args["authorization_type"] = "CUSTOM"
        route_args["authorizer_id"] = authorizer.id

    route_name = f"{method.lower()}{path}".replace("/", "-").strip("-")
    route_name = route_name.replace("{", "").replace("}", "")
    aws.apigatewayv2.Route(f"{route_name}-route", **route_args)

pulumi.export("ecr_repository_url", ecr_repository.repository_url)
pulumi.export("image_tag", image_tag)
pulumi.export("image_uri", image_uri)
pulumi.export("api_url", stage.invoke_url)
pulumi.export("api_id", api.id)
pulumi.export("authorizer_id", authorizer.id)
pulumi.export("state_table_name", state_table.name)
pulumi.export("state_table_arn", state_table.arn)
