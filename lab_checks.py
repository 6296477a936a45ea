import boto3
import json
import logging
import sys
import time

from botocore.exceptions import ClientError

from fundamentals_workshop import config
from fundamentals_workshop.labs import get_lab
from fundamentals_workshop.outputs import missing_outputs, read_outputs_csv

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

# Constants
WAIT_TIME = 10  # Time in seconds to wait between checks
MAX_WAIT_ITERATIONS = 30  # Maximum number of iterations to wait


def verify_hello_file(lambda_client, s3_client, function_name, bucket_name):
    """
    Invoke the lab 2 function and confirm it wrote hello.txt to the bucket.
    """
    try:
        response = lambda_client.invoke(FunctionName=function_name, InvocationType='RequestResponse')
        payload = json.loads(response['Payload'].read())
    except ClientError as e:
        logging.error(f"Failed to invoke function {function_name}: {e}")
        return False

    if payload.get('statusCode') != 200:
        logging.error(f"Function {function_name} returned {payload.get('statusCode')}: {payload.get('body')}")
        return False

    try:
        obj = s3_client.get_object(Bucket=bucket_name, Key=config.HELLO_OBJECT_KEY)
        body = obj['Body'].read().decode('utf-8')
    except ClientError as e:
        logging.error(f"Failed to read {config.HELLO_OBJECT_KEY} from bucket {bucket_name}: {e}")
        return False

    if body != config.HELLO_OBJECT_BODY:
        logging.error(f"Unexpected content in {config.HELLO_OBJECT_KEY}: {body!r}")
        return False

    logging.info(f"Function {function_name} wrote {config.HELLO_OBJECT_KEY} to bucket {bucket_name}")
    return True


def _allows_port(permissions, port):
    return [p for p in permissions
            if p.get('IpProtocol') == 'tcp' and p.get('FromPort') == port and p.get('ToPort') == port]


def verify_security_groups(ec2_client, ec2_security_group_id, rds_security_group_id):
    """
    Check HTTP is open to the world on the EC2 group and MySQL on the RDS
    group is only reachable from the EC2 group.
    """
    try:
        response = ec2_client.describe_security_groups(GroupIds=[ec2_security_group_id, rds_security_group_id])
    except ClientError as e:
        logging.error(f"Failed to describe security groups: {e}")
        return False

    groups = {group['GroupId']: group for group in response['SecurityGroups']}
    if ec2_security_group_id not in groups or rds_security_group_id not in groups:
        logging.error("Security groups not found.")
        return False

    http_rules = _allows_port(groups[ec2_security_group_id].get('IpPermissions', []), config.HTTP_PORT)
    http_cidrs = {r['CidrIp'] for rule in http_rules for r in rule.get('IpRanges', [])}
    if config.HTTP_ALLOWED_CIDR not in http_cidrs:
        logging.error(f"Security group {ec2_security_group_id} does not allow HTTP from {config.HTTP_ALLOWED_CIDR}")
        return False

    mysql_rules = _allows_port(groups[rds_security_group_id].get('IpPermissions', []), config.MYSQL_PORT)
    mysql_sources = {pair['GroupId'] for rule in mysql_rules for pair in rule.get('UserIdGroupPairs', [])}
    if ec2_security_group_id not in mysql_sources:
        logging.error(f"Security group {rds_security_group_id} does not allow MySQL from {ec2_security_group_id}")
        return False

    logging.info("Security group rules are in place.")
    return True


def wait_for_instance_online(ssm_client, instance_id, wait_time=WAIT_TIME, max_iterations=MAX_WAIT_ITERATIONS):
    """
    Wait until the instance is registered with Systems Manager and online.
    """
    for _ in range(max_iterations):
        try:
            response = ssm_client.describe_instance_information(
                Filters=[{'Key': 'InstanceIds', 'Values': [instance_id]}]
            )
        except ClientError as e:
            logging.error(f"Failed to describe instance {instance_id} in Systems Manager: {e}")
            return False
        instances = response.get('InstanceInformationList', [])
        if instances and instances[0].get('PingStatus') == 'Online':
            logging.info(f"Instance {instance_id} is online in Systems Manager.")
            return True
        logging.info(f"Waiting for instance {instance_id} to come online in Systems Manager...")
        time.sleep(wait_time)

    logging.error(f"Instance {instance_id} did not come online in Systems Manager.")
    return False


def instance_role_arn(ec2_client, iam_client, instance_id):
    """
    Return the ARN of the role in the instance profile of the instance.
    """
    try:
        response = ec2_client.describe_instances(InstanceIds=[instance_id])
        instance = response['Reservations'][0]['Instances'][0]
        profile_name = instance['IamInstanceProfile']['Arn'].split('/')[-1]
        profile = iam_client.get_instance_profile(InstanceProfileName=profile_name)
        return profile['InstanceProfile']['Roles'][0]['Arn']
    except (ClientError, KeyError, IndexError) as e:
        logging.error(f"Failed to find the role of instance {instance_id}: {e}")
        return None


def verify_bucket_policy(s3_client, bucket_name, role_arn):
    """
    Check the bucket policy grants the instance role access to the bucket.
    """
    if not role_arn:
        logging.error(f"No instance role to look for in the policy of bucket {bucket_name}.")
        return False

    try:
        response = s3_client.get_bucket_policy(Bucket=bucket_name)
    except ClientError as e:
        logging.error(f"Failed to get policy of bucket {bucket_name}: {e}")
        return False

    statements = json.loads(response['Policy']).get('Statement', [])
    for statement in statements:
        actions = statement.get('Action', [])
        if isinstance(actions, str):
            actions = [actions]
        principals = statement.get('Principal', {})
        principals = principals.get('AWS', []) if isinstance(principals, dict) else []
        if isinstance(principals, str):
            principals = [principals]
        if statement.get('Effect') == 'Allow' and 's3:ListBucket' in actions and role_arn in principals:
            logging.info(f"Bucket {bucket_name} policy grants access to {role_arn}.")
            return True

    logging.error(f"Bucket {bucket_name} policy does not grant s3:ListBucket to {role_arn}.")
    return False


def verify_database(rds_client, secrets_client, instance_identifier, secret_arn):
    """
    Check the MySQL instance is available and its credentials secret exists.
    """
    try:
        response = rds_client.describe_db_instances(DBInstanceIdentifier=instance_identifier)
    except ClientError as e:
        logging.error(f"Failed to describe DB instance {instance_identifier}: {e}")
        return False

    instance = response['DBInstances'][0]
    if instance.get('Engine') != 'mysql' or instance.get('DBInstanceStatus') != 'available':
        logging.error(f"DB instance {instance_identifier} is {instance.get('DBInstanceStatus')} "
                      f"with engine {instance.get('Engine')}")
        return False

    if not secret_arn:
        logging.error("No credentials secret in the stack outputs.")
        return False

    try:
        secrets_client.describe_secret(SecretId=secret_arn)
    except ClientError as e:
        logging.error(f"Failed to describe secret {secret_arn}: {e}")
        return False

    logging.info(f"DB instance {instance_identifier} is available.")
    return True


def check_lab_2(outputs, region):
    return [verify_hello_file(boto3.client('lambda', region_name=region),
                              boto3.client('s3', region_name=region),
                              outputs['LambdaFunctionName'],
                              outputs['BucketName'])]


def check_lab_3(outputs, region):
    return [verify_security_groups(boto3.client('ec2', region_name=region),
                                   outputs['EC2SecurityGroupId'],
                                   outputs['RDSSecurityGroupId'])]


def check_lab_4(outputs, region):
    role_arn = instance_role_arn(boto3.client('ec2', region_name=region),
                                 boto3.client('iam'),
                                 outputs['EC2InstanceId'])
    return check_lab_3(outputs, region) + [
        wait_for_instance_online(boto3.client('ssm', region_name=region), outputs['EC2InstanceId']),
        verify_bucket_policy(boto3.client('s3', region_name=region), outputs['BucketName'], role_arn),
    ]


def check_lab_5(outputs, region):
    return check_lab_4(outputs, region) + [
        verify_database(boto3.client('rds', region_name=region),
                        boto3.client('secretsmanager', region_name=region),
                        outputs['RDSInstanceIdentifier'],
                        outputs.get('RDSInstanceSecretArn'))
    ]


LAB_CHECKS = {
    2: check_lab_2,
    3: check_lab_3,
    4: check_lab_4,
    5: check_lab_5,
}


def run_checks(lab_number, outputs, region):
    """
    Run every check of a lab.

    Returns:
        (number of passed checks, total number of checks)
    """
    lab = get_lab(lab_number)
    missing = missing_outputs(outputs, lab.output_keys)
    if missing:
        logging.error(f"Missing stack outputs: {', '.join(missing)}")
        return 0, 1

    results = LAB_CHECKS[lab.number](outputs, region)
    return sum(1 for result in results if result), len(results)


def main(csv_file):
    metadata, outputs = read_outputs_csv(csv_file)
    logging.info(f"Checking lab {metadata['lab']} stack {metadata['stack_name']} in {metadata['region']}")

    passed, total = run_checks(metadata['lab'], outputs, metadata['region'])
    logging.info(f"{passed} out of {total} checks passed")
    return passed == total


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python lab_checks.py <outputs_csv>")
        sys.exit(1)

    if not main(sys.argv[1]):
        sys.exit(1)
