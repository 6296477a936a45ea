from dataclasses import dataclass
from typing import Dict, Tuple, Type, Union

from aws_cdk import Stack

from fundamentals_workshop import config
from fundamentals_workshop.lab_2_stack import StorageLambdaLabStack
from fundamentals_workshop.lab_3_stack import NetworkLabStack
from fundamentals_workshop.lab_4_stack import ComputeLabStack
from fundamentals_workshop.lab_5_stack import DatabaseLabStack


_NETWORK_OUTPUTS = ("EC2SecurityGroupId", "RDSSecurityGroupId", "VpcId")
_COMPUTE_OUTPUTS = _NETWORK_OUTPUTS + ("BucketName", "EC2InstanceId")


@dataclass(frozen=True)
class LabDefinition:
    """
    A numbered workshop lab and the stack that implements it.
    """
    number: int
    title: str
    stack_class: Type[Stack]
    output_keys: Tuple[str, ...]

    @property
    def stack_name(self) -> str:
        return stack_name_for(self.number)


LABS: Dict[int, LabDefinition] = {
    2: LabDefinition(2, "S3 bucket written by a Lambda function", StorageLambdaLabStack,
                     ("LambdaFunctionName", "BucketName", "LambdaArn")),
    3: LabDefinition(3, "VPC, security groups and SSM role", NetworkLabStack,
                     _NETWORK_OUTPUTS),
    4: LabDefinition(4, "EC2 instance with S3 bucket access", ComputeLabStack,
                     _COMPUTE_OUTPUTS),
    5: LabDefinition(5, "RDS MySQL database", DatabaseLabStack,
                     _COMPUTE_OUTPUTS + ("RDSInstanceEndpoint", "RDSInstanceIdentifier", "RDSInstanceSecretArn")),
}


def stack_name_for(number: int) -> str:
    return f"{config.STACK_NAME_PREFIX}Lab{number}Stack"


def get_lab(number: Union[int, str]) -> LabDefinition:
    """
    Look up a lab by its number.

    Args:
        number: the lab number, as an int or a numeric string (CDK context
            values and CSV cells arrive as strings).

    Returns:
        the lab definition.
    """
    try:
        lab_number = int(str(number).strip())
    except ValueError:
        lab_number = None

    if lab_number not in LABS:
        valid = ", ".join(str(n) for n in LABS)
        raise ValueError(f"Lab '{number}' is not valid. Choose one of: {valid}.")

    return LABS[lab_number]
