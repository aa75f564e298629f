import yaml

from NEGF_QTpy.io.input_parameters import TransmissionData


def get_input_from_yaml(yaml_file: str) -> dict:
    with open(yaml_file) as f:
        content = f.read()
        return yaml.safe_load(content) or {}


def load_transmission_data_from_yaml(yaml_path: str) -> TransmissionData:
    """
    Load and validate transmission input parameters from a YAML configuration file.

    The parameters are read from the `input_transmission` section and validated
    against the `TransmissionData` schema. Relative file names are kept as given;
    they are resolved against the working directory by the caller.

    Parameters
    ----------
    yaml_path : str
        Path to the YAML file.

    Returns
    -------
    TransmissionData
        Validated input parameters.
    """
    full_yaml = get_input_from_yaml(yaml_path)
    if "input_transmission" not in full_yaml:
        raise ValueError(f"Missing `input_transmission` section in {yaml_path}")
    input_transmission = full_yaml["input_transmission"] or {}
    return TransmissionData(filename=yaml_path, validate=True, **input_transmission)
