import logging
import os

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger()
logger.setLevel(logging.INFO)

OBJECT_KEY = 'hello.txt'
OBJECT_BODY = 'Hello World'

s3_client = boto3.client('s3')


def lambda_handler(event, context):
    bucket_name = os.environ['BUCKET_NAME']

    try:
        s3_client.put_object(
            Bucket=bucket_name,
            Key=OBJECT_KEY,
            Body=OBJECT_BODY,
            ContentType='text/plain'
        )
        logger.info("Wrote %s to bucket %s", OBJECT_KEY, bucket_name)
        return {
            'statusCode': 200,
            'body': 'File written!'
        }
    except (BotoCoreError, ClientError) as e:
        logger.error("Error writing %s to bucket %s: %s", OBJECT_KEY, bucket_name, str(e))
        return {
            'statusCode': 500,
            'body': 'Error writing file'
        }
