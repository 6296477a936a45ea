import csv
import re
from typing import Dict, Iterable, List, Tuple

_HEADER_ROWS = 4


def extract_outputs(deploy_output: str, stack_name: str) -> Dict[str, str]:
    """Extract the "<stack>.<Key> = <value>" lines printed by cdk deploy."""
    output_regex = rf"^[ \t]*{re.escape(stack_name)}\.(\w+)[ \t]*=[ \t]?(.*)$"

    return {match.group(1): match.group(2).strip()
            for match in re.finditer(output_regex, deploy_output, re.MULTILINE)}


def missing_outputs(outputs: Dict[str, str], expected_keys: Iterable[str]) -> List[str]:
    return [key for key in expected_keys if key not in outputs]


def write_outputs_csv(csv_file, stack_name: str, lab: int, region: str, outputs: Dict[str, str]) -> None:
    """
    Write the outputs of a deployed lab stack to a CSV file.

    The first four rows hold the stack name, the lab number, the region and
    a column header, followed by one row per output.
    """
    with open(csv_file, mode='w', newline='') as file:
        writer = csv.writer(file)
        writer.writerow(["Stack Name", stack_name])
        writer.writerow(["Lab", lab])
        writer.writerow(["Region", region])
        writer.writerow(["Output", "Value"])

        for key, value in outputs.items():
            writer.writerow([key, value])


def read_outputs_csv(csv_file) -> Tuple[Dict[str, str], Dict[str, str]]:
    """
    Read a file written by write_outputs_csv.

    Returns:
        a (metadata, outputs) tuple. Metadata has the keys "stack_name",
        "lab" and "region".
    """
    with open(csv_file, 'r', newline='') as file:
        rows = [row for row in csv.reader(file) if row]

    expected_labels = ["Stack Name", "Lab", "Region", "Output"]
    labels = [row[0] for row in rows[:_HEADER_ROWS]]
    if labels != expected_labels or any(len(row) < 2 for row in rows[:_HEADER_ROWS]):
        raise ValueError(f"File '{csv_file}' is not a lab outputs file.")

    metadata = {
        "stack_name": rows[0][1],
        "lab": rows[1][1],
        "region": rows[2][1],
    }
    outputs = {row[0]: row[1] if len(row) > 1 else "" for row in rows[_HEADER_ROWS:]}

    return metadata, outputs
