from aws_cdk import (
    aws_ec2 as ec2,
    aws_rds as rds,
    CfnOutput,
    Duration
)
from constructs import Construct

from fundamentals_workshop import config
from fundamentals_workshop.lab_4_stack import ComputeLabStack


class DatabaseLabStack(ComputeLabStack):
    """
    Lab 4 plus a single-AZ MySQL instance in the private subnets. The
    master password is generated into Secrets Manager.
    """

    def __init__(self, scope: Construct, id: str, **kwargs) -> None:
        super().__init__(scope, id, **kwargs)

        # RDS instance
        self.database = rds.DatabaseInstance(self, "MyRDSInstance",
                                             engine=rds.DatabaseInstanceEngine.mysql(
                                                 version=rds.MysqlEngineVersion.VER_8_0_37
                                             ),
                                             vpc=self.vpc,
                                             instance_type=ec2.InstanceType.of(ec2.InstanceClass.T3,
                                                                               ec2.InstanceSize.MICRO),
                                             vpc_subnets=ec2.SubnetSelection(
                                                 subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS
                                             ),
                                             security_groups=[self.rds_security_group],
                                             credentials=rds.Credentials.from_generated_secret(
                                                 config.DB_ADMIN_USERNAME
                                             ),
                                             multi_az=False,
                                             allocated_storage=config.DB_ALLOCATED_STORAGE_GB,
                                             max_allocated_storage=config.DB_MAX_ALLOCATED_STORAGE_GB,
                                             allow_major_version_upgrade=False,
                                             auto_minor_version_upgrade=True,
                                             backup_retention=Duration.days(config.DB_BACKUP_RETENTION_DAYS),
                                             deletion_protection=False,
                                             database_name=config.DB_NAME)

        CfnOutput(self, "RDSInstanceEndpoint", value=self.database.db_instance_endpoint_address)
        CfnOutput(self, "RDSInstanceIdentifier", value=self.database.instance_identifier)
        CfnOutput(self, "RDSInstanceSecretArn",
                  value=self.database.secret.secret_arn if self.database.secret else "")
