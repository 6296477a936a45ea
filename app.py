#!/usr/bin/env python3
import os
import sys

import aws_cdk as cdk

from fundamentals_workshop import config
from fundamentals_workshop.labs import LABS, get_lab


def create_app(context=None) -> cdk.App:
    """Build the CDK app with every lab, or only the one named by --context lab=<n>."""
    app = cdk.App(context=context)
    env = cdk.Environment(account=os.getenv("CDK_DEFAULT_ACCOUNT"),
                          region=os.getenv("CDK_DEFAULT_REGION"))

    lab_context = app.node.try_get_context("lab")
    if lab_context is not None:
        try:
            labs = [get_lab(lab_context)]
        except ValueError as e:
            print(f"Error: {e}")
            sys.exit(1)
    else:
        labs = list(LABS.values())

    for lab in labs:
        stack = lab.stack_class(app, lab.stack_name,
                                env=env,
                                description=f"AWS fundamentals workshop lab {lab.number}: {lab.title}")
        cdk.Tags.of(stack).add("project", config.PROJECT_TAG)
        cdk.Tags.of(stack).add("lab", str(lab.number))

    return app


if __name__ == "__main__":
    create_app().synth()
