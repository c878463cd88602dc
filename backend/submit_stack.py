from __future__ import annotations

from pathlib import Path

from aws_cdk import (
    CfnOutput,
    Duration,
    Stack,
    Tags,
    aws_apigateway as apigateway,
    aws_lambda as lambda_,
    aws_lambda_python_alpha as lambda_python,
    aws_ssm as ssm,
)
from constructs import Construct


class SceneSubmitStack(Stack):
    """Serverless endpoint that turns scene-list submissions into GitHub pull requests."""

    def __init__(self, scope: Construct, construct_id: str, *, stage: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self._stage = stage
        Tags.of(self).add("Stage", stage)

        lambda_src = Path(__file__).resolve().parent / "lambda_src"

        shared_layer = lambda_python.PythonLayerVersion(
            self,
            "SharedUtilitiesLayer",
            entry=str(lambda_src / "common_layer"),
            compatible_runtimes=[lambda_.Runtime.PYTHON_3_11],
            bundling=lambda_python.BundlingOptions(
                image=lambda_.Runtime.PYTHON_3_11.bundling_image,
                command=[
                    "bash",
                    "-c",
                    "mkdir -p /asset-output/python && cp -r /asset-input/python/. /asset-output/python",
                ],
            ),
        )

        private_key_param_name = (
            self.node.try_get_context("githubPrivateKeyParameterName")
            or f"/bleepr/env/{stage.upper()}/GITHUB_PRIVATE_KEY_PEM"
        )
        private_key_param = ssm.StringParameter.from_secure_string_parameter_attributes(
            self,
            "GithubPrivateKeyParameter",
            parameter_name=private_key_param_name,
        )

        submit_key_param_name = (
            self.node.try_get_context("submitKeyParameterName")
            or f"/bleepr/env/{stage.upper()}/BLEEPR_SUBMIT_KEY"
        )
        submit_key_param = ssm.StringParameter.from_secure_string_parameter_attributes(
            self,
            "SubmitKeyParameter",
            parameter_name=submit_key_param_name,
        )

        submit_lambda = lambda_python.PythonFunction(
            self,
            "SceneSubmitLambda",
            entry=str(lambda_src),
            index="scene_submit/handler.py",
            handler="handler",
            runtime=lambda_.Runtime.PYTHON_3_11,
            timeout=Duration.seconds(30),
            memory_size=256,
            environment={
                "GITHUB_APP_ID": self.node.try_get_context("githubAppId") or "",
                "GITHUB_INSTALLATION_ID": self.node.try_get_context("githubInstallationId") or "",
                "GITHUB_PRIVATE_KEY_PARAMETER": private_key_param_name,
                "BLEEPR_SUBMIT_KEY_PARAMETER": submit_key_param_name,
                "SCENES_REPO_OWNER": self.node.try_get_context("scenesRepoOwner") or "MagicWagon",
                "SCENES_REPO_NAME": self.node.try_get_context("scenesRepoName") or "scene-lists",
                "STAGE": stage,
            },
            layers=[shared_layer],
            bundling=lambda_python.BundlingOptions(
                image=lambda_.Runtime.PYTHON_3_11.bundling_image,
                command=[
                    "bash",
                    "-c",
                    "mkdir -p /asset-output && cp -r /asset-input/. /asset-output && pip install --no-cache-dir requests 'PyJWT[crypto]' cryptography pydantic --target /asset-output --implementation cp --platform manylinux2014_x86_64 --python-version 3.11 --abi cp311 --only-binary=:all:",
                ],
            ),
        )
        private_key_param.grant_read(submit_lambda)
        submit_key_param.grant_read(submit_lambda)

        api = apigateway.RestApi(
            self,
            "SceneSubmitApi",
            rest_api_name=f"Bleepr Scene Submissions ({stage})",
            default_cors_preflight_options=apigateway.CorsOptions(
                allow_methods=["POST", "OPTIONS"],
                allow_origins=apigateway.Cors.ALL_ORIGINS,
                allow_headers=["Content-Type", "Authorization"],
            ),
            deploy_options=apigateway.StageOptions(
                throttling_rate_limit=5,
                throttling_burst_limit=2,
            ),
        )
        submit_resource = api.root.add_resource("submit-scene")
        submit_resource.add_method("POST", apigateway.LambdaIntegration(submit_lambda))

        CfnOutput(
            self,
            "SceneSubmitApiEndpoint",
            value=api.url_for_path("/submit-scene"),
            description="POST scene lists here to open a pull request on the scene-lists repository",
        )
