from aws_cdk import (
    Stack,
    aws_ec2 as ec2,
    aws_iam as iam,
    CfnOutput
)
from constructs import Construct

from fundamentals_workshop import config


def http_ingress_peer(cidr: str) -> ec2.IPeer:
    """Return the peer allowed to reach the EC2 instance over HTTP."""
    if cidr == "0.0.0.0/0":
        return ec2.Peer.any_ipv4()
    return ec2.Peer.ipv4(cidr)


class NetworkLabStack(Stack):
    """
    Networking baseline shared by the later labs: a VPC with public and
    private subnets, security groups for the web tier and the database,
    and an instance role managed through SSM.
    """

    def __init__(self, scope: Construct, id: str, **kwargs) -> None:
        super().__init__(scope, id, **kwargs)

        # VPC
        self.vpc = ec2.Vpc(self, "MyVpc",
                           nat_gateways=config.NAT_GATEWAYS,
                           subnet_configuration=[
                               ec2.SubnetConfiguration(
                                   cidr_mask=config.SUBNET_CIDR_MASK,
                                   name="public",
                                   subnet_type=ec2.SubnetType.PUBLIC
                               ),
                               ec2.SubnetConfiguration(
                                   cidr_mask=config.SUBNET_CIDR_MASK,
                                   name="private",
                                   subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS
                               )
                           ])

        # Security Group for EC2 instance
        self.ec2_security_group = ec2.SecurityGroup(self, "EC2SecurityGroup",
                                                    vpc=self.vpc,
                                                    allow_all_outbound=True,
                                                    description="Allow HTTP access to EC2 instance")
        self.ec2_security_group.add_ingress_rule(
            http_ingress_peer(config.HTTP_ALLOWED_CIDR),
            ec2.Port.tcp(config.HTTP_PORT),
            "Allow HTTP access"
        )

        # Security Group for RDS instance, reachable only from the EC2 group
        self.rds_security_group = ec2.SecurityGroup(self, "RDSSecurityGroup",
                                                    vpc=self.vpc,
                                                    allow_all_outbound=True,
                                                    description="Allow MySQL access to RDS instance")
        self.rds_security_group.add_ingress_rule(
            self.ec2_security_group,
            ec2.Port.tcp(config.MYSQL_PORT),
            "Allow MySQL access from EC2 instance"
        )

        # IAM role for EC2 instance to use SSM
        self.instance_role = iam.Role(self, "SSMRole",
                                      assumed_by=iam.ServicePrincipal("ec2.amazonaws.com"))
        self.instance_role.add_managed_policy(
            iam.ManagedPolicy.from_aws_managed_policy_name("AmazonSSMManagedInstanceCore"))

        # Outputs
        CfnOutput(self, "EC2SecurityGroupId", value=self.ec2_security_group.security_group_id)
        CfnOutput(self, "RDSSecurityGroupId", value=self.rds_security_group.security_group_id)
        CfnOutput(self, "VpcId", value=self.vpc.vpc_id)
