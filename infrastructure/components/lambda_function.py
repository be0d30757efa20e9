import json
from typing import Dict, List, Optional

import pulumi
import pulumi_aws as aws

LAMBDA_BASIC_EXECUTION = (
    "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"
)


class MoniFlyFunction(pulumi.ComponentResource):
    """
    One MoniFly API handler running from the shared container image.

    Creates the function's log group, an execution role with the basic
    Lambda policy plus any inline policies given, and the function itself
    with ``handler`` as the image command.
    """

    def __init__(
        self,
        name: str,
        handler: str,
        image_uri: pulumi.Input[str],
        environment_vars: Optional[Dict[str, pulumi.Input[str]]] = None,
        inline_policies: Optional[List[pulumi.Input[str]]] = None,
        timeout: int = 15,
        memory_size: int = 256,
        log_retention_days: int = 14,
        opts: Optional[pulumi.ResourceOptions] = None,
    ):
        super().__init__("monifly:aws:Function", name, None, opts)
        child = pulumi.ResourceOptions(parent=self)

        self.log_group = aws.cloudwatch.LogGroup(
            f"{name}-logs",
            name=f"/aws/lambda/{name}",
            retention_in_days=log_retention_days,
            opts=child,
        )

        self.role = aws.iam.Role(
            f"{name}-role",
            assume_role_policy=json.dumps(
                {
                    "Version": "2012-10-17",
                    "Statement": [
                        {
                            "Action": "sts:AssumeRole",
                            "Effect": "Allow",
                            "Principal": {"Service": "lambda.amazonaws.com"},
                        }
                    ],
                }
            ),
            opts=child,
        )

        aws.iam.RolePolicyAttachment(
            f"{name}-basic-execution",
            role=self.role.name,
            policy_arn=LAMBDA_BASIC_EXECUTION,
            opts=child,
        )

        for index, policy in enumerate(inline_policies or []):
            aws.iam.RolePolicy(
                f"{name}-inline-{index}",
                role=self.role.id,
                policy=policy,
                opts=child,
            )

        self.function = aws.lambda_.Function(
            f"{name}-function",
            package_type="Image",
            image_uri=image_uri,
            role=self.role.arn,
            timeout=timeout,
            memory_size=memory_size,
            environment={"variables": environment_vars or {}},
            image_config={"commands": [handler]},
            opts=pulumi.ResourceOptions(parent=self, depends_on=[self.log_group]),
        )

        self.arn = self.function.arn
        self.name = self.function.name
        self.invoke_arn = self.function.invoke_arn

        self.register_outputs(
            {
                "arn": self.arn,
                "name": self.name,
                "invoke_arn": self.invoke_arn,
                "role_arn": self.role.arn,
            }
        )
