from aws_cdk import (
    Stack,
    aws_lambda as _lambda,
    aws_iam as iam,
    aws_s3 as s3,
    CfnOutput,
    RemovalPolicy
)
from constructs import Construct

from fundamentals_workshop import config


class StorageLambdaLabStack(Stack):

    def __init__(self, scope: Construct, id: str, **kwargs) -> None:
        super().__init__(scope, id, **kwargs)

        # S3 bucket that is emptied and removed with the stack
        self.bucket = s3.Bucket(self, "MyBucket",
                                removal_policy=RemovalPolicy.DESTROY,
                                auto_delete_objects=True)

        # Role for the Lambda function
        self.lambda_role = iam.Role(self, "LambdaRole",
                                    assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"))
        self.lambda_role.add_managed_policy(
            iam.ManagedPolicy.from_aws_managed_policy_name("service-role/AWSLambdaBasicExecutionRole"))

        # Only read and write objects in the lab bucket
        correct_policy = iam.Policy(self, "CorrectPolicy",
                                    statements=[
                                        iam.PolicyStatement(
                                            actions=["s3:GetObject", "s3:PutObject"],
                                            resources=[self.bucket.arn_for_objects("*")]
                                        )
                                    ])
        self.lambda_role.attach_inline_policy(correct_policy)

        # Lambda Function
        self.function = _lambda.Function(self, "MyLambda",
                                         runtime=_lambda.Runtime.PYTHON_3_12,
                                         handler="index.lambda_handler",
                                         code=_lambda.Code.from_asset(config.LAMBDA_CODE_PATH),
                                         environment={
                                             "BUCKET_NAME": self.bucket.bucket_name,
                                         },
                                         role=self.lambda_role)

        CfnOutput(self, "LambdaFunctionName", value=self.function.function_name)
        CfnOutput(self, "BucketName", value=self.bucket.bucket_name)
        CfnOutput(self, "LambdaArn", value=self.function.function_arn)
