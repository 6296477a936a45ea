import aws_cdk.assertions as assertions


def policy_statements(template: assertions.Template, resource_type: str):
    """All policy statements of every resource of the given type."""
    statements = []
    for resource in template.find_resources(resource_type).values():
        document = resource["Properties"]["PolicyDocument"]
        statements.extend(document["Statement"])
    return statements


def statement_actions(statement) -> set:
    actions = statement.get("Action", [])
    if isinstance(actions, str):
        actions = [actions]
    return set(actions)


def ec2_role(template: assertions.Template):
    """Properties of the role EC2 instances assume."""
    for resource in template.find_resources("AWS::IAM::Role").values():
        properties = resource["Properties"]
        principals = [statement.get("Principal") for statement in properties["AssumeRolePolicyDocument"]["Statement"]]
        if {"Service": "ec2.amazonaws.com"} in principals:
            return properties
    raise AssertionError("No role assumed by ec2.amazonaws.com")


def bucket_logical_id(template: assertions.Template) -> str:
    buckets = template.find_resources("AWS::S3::Bucket")
    assert len(buckets) == 1
    return next(iter(buckets))


def logical_id_of_role(template: assertions.Template, construct_id: str) -> str:
    role_ids = [logical_id for logical_id in template.find_resources("AWS::IAM::Role")
                if logical_id.startswith(construct_id)]
    assert len(role_ids) == 1
    return role_ids[0]
