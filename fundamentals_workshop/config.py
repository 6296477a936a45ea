import os
from pathlib import Path
from typing import Final


_REPO_ROOT = Path(__file__).resolve().parent.parent

# Prefix of every lab stack name, e.g. AwsFundamentalsWorkshopLab4Stack.
STACK_NAME_PREFIX: Final[str] = os.getenv("STACK_NAME_PREFIX", "AwsFundamentalsWorkshop")
# Value of the "project" tag applied to every lab stack.
PROJECT_TAG: Final[str] = os.getenv("PROJECT_TAG", "aws-fundamentals-workshop")

# Lab 2 Lambda function source, deployed as an asset.
LAMBDA_CODE_PATH: Final[str] = os.getenv("LAMBDA_CODE_PATH", str(_REPO_ROOT / "lambda" / "hello_writer"))
HELLO_OBJECT_KEY: Final[str] = "hello.txt"
HELLO_OBJECT_BODY: Final[str] = "Hello World"

# Default is one NAT gateway per AZ, the labs only need one.
NAT_GATEWAYS: Final[int] = 1
SUBNET_CIDR_MASK: Final[int] = 24
# Source of the HTTP ingress rule on the EC2 security group.
HTTP_ALLOWED_CIDR: Final[str] = os.getenv("HTTP_ALLOWED_CIDR", "0.0.0.0/0")
HTTP_PORT: Final[int] = 80
MYSQL_PORT: Final[int] = 3306

EC2_USER_DATA_COMMANDS: Final[tuple] = (
    "yum update -y",
    "yum install -y aws-cli",
    'echo "AWS CLI installed. You can now use AWS S3 commands to test bucket access."',
)
# Actions the EC2 instance role is granted on the lab bucket.
BUCKET_ACCESS_ACTIONS: Final[tuple] = (
    "s3:GetObject",
    "s3:ListBucket",
    "s3:PutObject",
    "s3:DeleteObject",
    "s3:DeleteBucket",
)

# Master user whose password is generated in Secrets Manager.
DB_ADMIN_USERNAME: Final[str] = os.getenv("DB_ADMIN_USERNAME", "admin")
DB_NAME: Final[str] = "MyDatabase"
DB_ALLOCATED_STORAGE_GB: Final[int] = 20
DB_MAX_ALLOCATED_STORAGE_GB: Final[int] = 100
DB_BACKUP_RETENTION_DAYS: Final[int] = 7
