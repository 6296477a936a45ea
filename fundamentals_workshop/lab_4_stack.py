from aws_cdk import (
    aws_ec2 as ec2,
    aws_iam as iam,
    aws_s3 as s3,
    CfnOutput,
    RemovalPolicy
)
from constructs import Construct

from fundamentals_workshop import config
from fundamentals_workshop.lab_3_stack import NetworkLabStack


class ComputeLabStack(NetworkLabStack):
    """
    Lab 3 networking plus an EC2 instance in the public subnets and a
    private bucket the instance role can manage.
    """

    def __init__(self, scope: Construct, id: str, **kwargs) -> None:
        super().__init__(scope, id, **kwargs)

        # Add S3 read permissions to the EC2 instance role
        self.instance_role.add_managed_policy(
            iam.ManagedPolicy.from_aws_managed_policy_name("AmazonS3ReadOnlyAccess"))

        # EC2 instance
        self.instance = ec2.Instance(self, "MyEC2Instance",
                                     vpc=self.vpc,
                                     instance_type=ec2.InstanceType.of(ec2.InstanceClass.T2,
                                                                       ec2.InstanceSize.MICRO),
                                     machine_image=ec2.MachineImage.latest_amazon_linux2(),
                                     security_group=self.ec2_security_group,
                                     vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
                                     role=self.instance_role,
                                     user_data=ec2.UserData.for_linux())

        # Install AWS CLI on the EC2 instance
        self.instance.add_user_data(*config.EC2_USER_DATA_COMMANDS)

        # S3 bucket without any public access
        self.bucket = s3.Bucket(self, "MyBucket",
                                removal_policy=RemovalPolicy.DESTROY,
                                auto_delete_objects=True,
                                public_read_access=False,
                                block_public_access=s3.BlockPublicAccess.BLOCK_ALL)

        # Bucket policy allowing access from the EC2 instance role
        self.bucket.add_to_resource_policy(iam.PolicyStatement(
            actions=list(config.BUCKET_ACCESS_ACTIONS),
            resources=[self.bucket.bucket_arn, self.bucket.arn_for_objects("*")],
            principals=[iam.ArnPrincipal(self.instance.role.role_arn)]
        ))

        CfnOutput(self, "BucketName",
                  value=self.bucket.bucket_name,
                  description="Name of the S3 bucket")
        CfnOutput(self, "EC2InstanceId", value=self.instance.instance_id)
