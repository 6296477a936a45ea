import subprocess
import boto3
import os
import time
import glob
import pandas as pd
from tqdm import tqdm
import sys

from fundamentals_workshop.labs import LABS, get_lab
from fundamentals_workshop.outputs import (
    extract_outputs,
    missing_outputs,
    read_outputs_csv,
    write_outputs_csv,
)

OUTPUTS_FILE_SUFFIX = "-outputs.csv"

def available_regions():
    """Regions known to the installed botocore, for the EC2 service."""
    return boto3.Session().get_available_regions('ec2')

def aws_sign_in():
    """Verify AWS CLI configuration and account."""
    print("Please ensure you have AWS CLI configured with 'aws configure'.")
    try:
        sts_client = boto3.client('sts')
        caller_identity = sts_client.get_caller_identity()
        account_id = caller_identity.get('Account')
        print(f"Signed into AWS account: {account_id}")
        confirmation = input("Is this the correct account? (yes/no) [yes]: ").strip().lower()
        if confirmation not in ['yes', 'y', '']:
            print("Please configure the correct AWS account and try again.")
            sys.exit(1)
        print("AWS credentials are configured correctly.")
        return account_id
    except Exception as e:
        print(f"Error: {e}")
        print("Please run 'aws configure' to set up your credentials.")
        sys.exit(1)

def set_aws_region():
    """Query the current AWS region and ask if the user wants to change it."""
    session = boto3.Session()
    current_region = session.region_name

    if current_region:
        print(f"Current AWS region: {current_region}")
        change_region = input("Would you like to change the region? (yes/no) [no]: ").strip().lower()
        if change_region not in ['yes', 'y']:
            return current_region
    else:
        print("No AWS region currently set.")

    while True:
        new_region = input("Please enter the AWS region to use (e.g. us-west-2): ").strip()
        if new_region in available_regions():
            os.environ['AWS_DEFAULT_REGION'] = new_region
            os.environ['AWS_REGION'] = new_region
            try:
                subprocess.run(["aws", "configure", "set", "region", new_region], check=True)
                print(f"AWS region set to {new_region}.")
                return new_region
            except subprocess.CalledProcessError as e:
                print(f"Error setting AWS region: {e}")
        else:
            print("Invalid AWS region. Please enter a valid AWS region.")

def select_lab():
    """Allow user to select a lab to deploy."""
    print("Available labs:")
    for lab in LABS.values():
        print(f"{lab.number}. {lab.title} ({lab.stack_name})")

    while True:
        choice = input("Choose lab (enter number): ").strip()
        try:
            return get_lab(choice)
        except ValueError as e:
            print(e)

def outputs_file_for(stack_name):
    return f"{stack_name}{OUTPUTS_FILE_SUFFIX}"

def _stream_command(command, region):
    """Run a command in the given region, echoing its output. Returns (return code, output)."""
    env = {**os.environ, 'AWS_REGION': region, 'AWS_DEFAULT_REGION': region}
    process = subprocess.Popen(command, env=env, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True, bufsize=1)

    output = []
    for line in iter(process.stdout.readline, ''):
        print(line, end='')
        sys.stdout.flush()
        output.append(line)

    process.stdout.close()
    return process.wait(), ''.join(output)

def deploy_cdk_stack(lab, region):
    print(f"Deploying {lab.stack_name}... Please wait")

    command = ["cdk", "deploy", lab.stack_name,
               "--context", f"lab={lab.number}",
               "--require-approval", "never"]

    try:
        return_code, output = _stream_command(command, region)
    except OSError as e:
        print(f"CDK deployment error: {e}")
        return None

    if return_code == 0:
        print("\nCDK stack deployed successfully.")
        return output
    print("\nCDK stack deployment failed.")
    return None

def destroy_cdk_stack(stack_name, lab_number, region):
    command = ["cdk", "destroy", stack_name, "--context", f"lab={lab_number}", "--force"]

    try:
        return_code, _ = _stream_command(command, region)
    except OSError as e:
        print(f"Error destroying CDK stack {stack_name}: {e}")
        return False

    if return_code == 0:
        print(f"\nCDK stack {stack_name} destroyed successfully.")
        return True
    print(f"\nCDK stack {stack_name} destroy failed.")
    return False

def execute_script(script_name, *args):
    try:
        # Convert all args to strings to avoid TypeError
        str_args = [str(arg) for arg in args]

        with tqdm(total=0, desc=f"Running {script_name}", bar_format='{desc}: {elapsed}') as pbar:
            result = subprocess.Popen([sys.executable, script_name, *str_args],
                                      stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)

            while result.poll() is None:
                pbar.update(1)
                time.sleep(1)

        stdout, stderr = result.communicate()

        if result.returncode == 0:
            print(f"\n{script_name} completed successfully.")
        else:
            print(f"\n{script_name} execution failed.")
        # Scripts log to stderr
        print(stdout)
        print(stderr)
        return result.returncode == 0
    except OSError as e:
        print(f"Script execution error: {e}")
        return False

def find_outputs_files(region):
    """Find the outputs files of labs deployed in the given region."""
    csv_files = glob.glob(f"*{OUTPUTS_FILE_SUFFIX}")

    valid_files = []
    for file in csv_files:
        try:
            df = pd.read_csv(file, header=None, names=["Key", "Value"], dtype=str)
            if ((df["Key"] == "Region") & (df["Value"] == region)).any():
                valid_files.append(file)
        except (OSError, pd.errors.ParserError) as e:
            print(f"Error reading {file}: {e}")

    return sorted(valid_files)

def select_outputs_file(region):
    """Select the outputs file of a deployed lab in the given region."""
    valid_files = find_outputs_files(region)
    if not valid_files:
        print(f"No deployed labs found in the '{region}' region.")
        return None

    print("Labs available to destroy:")
    for index, file in enumerate(valid_files, start=1):
        print(f"{index}. {file}")

    while True:
        choice = input("Choose a lab (enter number): ").strip()
        if choice.isdigit() and 1 <= int(choice) <= len(valid_files):
            return valid_files[int(choice) - 1]
        print(f"Invalid choice. Please enter a number between 1 and {len(valid_files)}.")

def create_lab(region):
    lab = select_lab()
    csv_file = outputs_file_for(lab.stack_name)
    if os.path.exists(csv_file):
        print(f"Lab {lab.number} is already deployed, see {csv_file}. Destroy it first.")
        return False

    deploy_output = deploy_cdk_stack(lab, region)
    if not deploy_output:
        print("CDK deployment failed. Exiting.")
        return False

    outputs = extract_outputs(deploy_output, lab.stack_name)
    missing = missing_outputs(outputs, lab.output_keys)
    if missing:
        print(f"Failed to find {', '.join(missing)} in the CDK deploy output.")

    write_outputs_csv(csv_file, lab.stack_name, lab.number, region, outputs)
    print(f"View {csv_file} for the stack outputs")

    print("Checking the lab resources...")
    return execute_script('lab_checks.py', csv_file)

def destroy_lab(region):
    csv_file = select_outputs_file(region)
    if not csv_file:
        return False

    try:
        metadata, _ = read_outputs_csv(csv_file)
    except ValueError as e:
        print(f"Error reading {csv_file}: {e}")
        return False

    if not destroy_cdk_stack(metadata['stack_name'], metadata['lab'], region):
        return False

    try:
        os.remove(csv_file)
        print(f"Deleted the file: {csv_file}")
    except OSError as e:
        print(f"Failed to delete the file {csv_file}: {e}")
    return True

if __name__ == "__main__":
    aws_sign_in()
    region = set_aws_region()

    while True:
        action = input("Would you like to create or destroy a lab? (create/destroy) [create]: ").strip().lower()
        if action in ['create', 'destroy', '']:
            if action == '':
                action = 'create'
            break
        else:
            print("Invalid action. Please enter 'create' or 'destroy'.")

    if action == 'create':
        succeeded = create_lab(region)
    else:
        succeeded = destroy_lab(region)

    if not succeeded:
        sys.exit(1)
