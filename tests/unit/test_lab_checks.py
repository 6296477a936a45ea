import io
import json
from unittest import mock

import pytest
from botocore.exceptions import ClientError

import lab_checks
from fundamentals_workshop.outputs import write_outputs_csv

EC2_SG = "sg-0123456789abcdef0"
RDS_SG = "sg-0fedcba9876543210"
ROLE_ARN = "arn:aws:iam::123456789012:role/Lab4-SSMRole"


def _client_error(operation):
    return ClientError({"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, operation)


def _security_groups(http_cidr="0.0.0.0/0", mysql_source=EC2_SG):
    return {
        "SecurityGroups": [
            {
                "GroupId": EC2_SG,
                "IpPermissions": [
                    {"IpProtocol": "tcp", "FromPort": 80, "ToPort": 80,
                     "IpRanges": [{"CidrIp": http_cidr}], "UserIdGroupPairs": []}
                ],
            },
            {
                "GroupId": RDS_SG,
                "IpPermissions": [
                    {"IpProtocol": "tcp", "FromPort": 3306, "ToPort": 3306,
                     "IpRanges": [], "UserIdGroupPairs": [{"GroupId": mysql_source}]}
                ],
            },
        ]
    }


class TestVerifyHelloFile:

    def _clients(self, status_code=200, body=b"Hello World"):
        lambda_client = mock.Mock()
        lambda_client.invoke.return_value = {
            "Payload": io.BytesIO(json.dumps({"statusCode": status_code, "body": "File written!"}).encode())
        }
        s3_client = mock.Mock()
        s3_client.get_object.return_value = {"Body": io.BytesIO(body)}
        return lambda_client, s3_client

    def test_file_written(self):
        lambda_client, s3_client = self._clients()

        assert lab_checks.verify_hello_file(lambda_client, s3_client, "MyLambda", "my-bucket")
        s3_client.get_object.assert_called_once_with(Bucket="my-bucket", Key="hello.txt")

    def test_function_error(self):
        lambda_client, s3_client = self._clients(status_code=500)

        assert not lab_checks.verify_hello_file(lambda_client, s3_client, "MyLambda", "my-bucket")
        s3_client.get_object.assert_not_called()

    def test_unexpected_content(self):
        lambda_client, s3_client = self._clients(body=b"Goodbye")

        assert not lab_checks.verify_hello_file(lambda_client, s3_client, "MyLambda", "my-bucket")

    def test_missing_file(self):
        lambda_client, s3_client = self._clients()
        s3_client.get_object.side_effect = _client_error("GetObject")

        assert not lab_checks.verify_hello_file(lambda_client, s3_client, "MyLambda", "my-bucket")


class TestVerifySecurityGroups:

    def test_rules_in_place(self):
        ec2_client = mock.Mock()
        ec2_client.describe_security_groups.return_value = _security_groups()

        assert lab_checks.verify_security_groups(ec2_client, EC2_SG, RDS_SG)
        ec2_client.describe_security_groups.assert_called_once_with(GroupIds=[EC2_SG, RDS_SG])

    def test_http_not_open(self):
        ec2_client = mock.Mock()
        ec2_client.describe_security_groups.return_value = _security_groups(http_cidr="10.0.0.0/16")

        assert not lab_checks.verify_security_groups(ec2_client, EC2_SG, RDS_SG)

    def test_mysql_from_other_group(self):
        ec2_client = mock.Mock()
        ec2_client.describe_security_groups.return_value = _security_groups(mysql_source="sg-other")

        assert not lab_checks.verify_security_groups(ec2_client, EC2_SG, RDS_SG)


def test_wait_for_instance_online_polls_until_online():
    ssm_client = mock.Mock()
    ssm_client.describe_instance_information.side_effect = [
        {"InstanceInformationList": []},
        {"InstanceInformationList": [{"InstanceId": "i-123", "PingStatus": "Online"}]},
    ]

    assert lab_checks.wait_for_instance_online(ssm_client, "i-123", wait_time=0, max_iterations=3)
    assert ssm_client.describe_instance_information.call_count == 2


def test_wait_for_instance_online_gives_up():
    ssm_client = mock.Mock()
    ssm_client.describe_instance_information.return_value = {"InstanceInformationList": []}

    assert not lab_checks.wait_for_instance_online(ssm_client, "i-123", wait_time=0, max_iterations=2)
    assert ssm_client.describe_instance_information.call_count == 2


@pytest.mark.parametrize("action, principal, expected", [
    (["s3:GetObject", "s3:ListBucket"], {"AWS": ROLE_ARN}, True),
    ("s3:ListBucket", {"AWS": [ROLE_ARN]}, True),
    (["s3:GetObject"], {"AWS": ROLE_ARN}, False),
    (["s3:ListBucket"], {"AWS": "arn:aws:iam::123456789012:role/other"}, False),
    (["s3:ListBucket"], "*", False),
])
def test_verify_bucket_policy(action, principal, expected):
    s3_client = mock.Mock()
    s3_client.get_bucket_policy.return_value = {
        "Policy": json.dumps({"Statement": [
            {"Effect": "Allow", "Action": action, "Principal": principal, "Resource": "*"}
        ]})
    }

    assert lab_checks.verify_bucket_policy(s3_client, "my-bucket", ROLE_ARN) is expected


def test_verify_bucket_policy_without_role():
    s3_client = mock.Mock()

    assert not lab_checks.verify_bucket_policy(s3_client, "my-bucket", None)
    s3_client.get_bucket_policy.assert_not_called()


def test_instance_role_arn():
    ec2_client = mock.Mock()
    ec2_client.describe_instances.return_value = {"Reservations": [{"Instances": [
        {"IamInstanceProfile": {"Arn": "arn:aws:iam::123456789012:instance-profile/Lab4-Profile"}}
    ]}]}
    iam_client = mock.Mock()
    iam_client.get_instance_profile.return_value = {"InstanceProfile": {"Roles": [{"Arn": ROLE_ARN}]}}

    assert lab_checks.instance_role_arn(ec2_client, iam_client, "i-123") == ROLE_ARN
    iam_client.get_instance_profile.assert_called_once_with(InstanceProfileName="Lab4-Profile")


def test_instance_role_arn_without_profile():
    ec2_client = mock.Mock()
    ec2_client.describe_instances.return_value = {"Reservations": [{"Instances": [{}]}]}

    assert lab_checks.instance_role_arn(ec2_client, mock.Mock(), "i-123") is None


class TestVerifyDatabase:

    def _rds_client(self, status="available", engine="mysql"):
        rds_client = mock.Mock()
        rds_client.describe_db_instances.return_value = {
            "DBInstances": [{"DBInstanceStatus": status, "Engine": engine}]
        }
        return rds_client

    def test_available(self):
        secrets_client = mock.Mock()

        assert lab_checks.verify_database(self._rds_client(), secrets_client, "db-1", "arn:secret")
        secrets_client.describe_secret.assert_called_once_with(SecretId="arn:secret")

    def test_still_creating(self):
        assert not lab_checks.verify_database(self._rds_client(status="creating"), mock.Mock(), "db-1", "arn:secret")

    def test_without_secret(self):
        assert not lab_checks.verify_database(self._rds_client(), mock.Mock(), "db-1", "")

    def test_missing_secret(self):
        secrets_client = mock.Mock()
        secrets_client.describe_secret.side_effect = _client_error("DescribeSecret")

        assert not lab_checks.verify_database(self._rds_client(), secrets_client, "db-1", "arn:secret")


def test_run_checks_requires_lab_outputs():
    assert lab_checks.run_checks(3, {"VpcId": "vpc-1"}, "us-east-1") == (0, 1)


def test_run_checks_counts_results(monkeypatch):
    monkeypatch.setitem(lab_checks.LAB_CHECKS, 3, lambda outputs, region: [True, False])
    outputs = {"EC2SecurityGroupId": EC2_SG, "RDSSecurityGroupId": RDS_SG, "VpcId": "vpc-1"}

    assert lab_checks.run_checks("3", outputs, "us-east-1") == (1, 2)


def test_main_reads_outputs_file(tmp_path, monkeypatch):
    csv_file = tmp_path / "Lab2Stack-outputs.csv"
    outputs = {"LambdaFunctionName": "MyLambda", "BucketName": "my-bucket", "LambdaArn": "arn:lambda"}
    write_outputs_csv(csv_file, "Lab2Stack", 2, "eu-west-1", outputs)
    check = mock.Mock(return_value=[True])
    monkeypatch.setitem(lab_checks.LAB_CHECKS, 2, check)

    assert lab_checks.main(csv_file)
    check.assert_called_once_with(outputs, "eu-west-1")
