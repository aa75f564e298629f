from typing import Any, List, Literal, Optional

from pydantic import (
    BaseModel as PydanticBaseModel,
)
from pydantic import (
    NonNegativeFloat,
    PositiveInt,
    confloat,
    conint,
    field_validator,
)
from typing_extensions import Annotated

TransportDirectionName = Literal[
    "left_to_right",
    "right_to_left",
]


class FileNamesData(PydanticBaseModel):
    hamiltonian_file: str
    output_dir: str = "./"
    prefix: str = ""
    postfix: str = ""

    @field_validator("hamiltonian_file")
    @classmethod
    def check_hamiltonian_file(cls, value: str) -> str:
        if len(value) == 0:
            raise ValueError("hamiltonian_file unspecified")
        return value


class EnergySettings(PydanticBaseModel):
    emin: float = -2.0
    emax: float = 2.0
    ne: Annotated[PositiveInt, conint(gt=1)] = 1000
    delta: Annotated[NonNegativeFloat, confloat(ge=0.0, le=0.3)] = 1e-5

    @field_validator("emax")
    @classmethod
    def check_emax(cls, value: float, info) -> float:
        emin = info.data.get("emin", None)
        if emin is not None and value <= emin:
            raise ValueError("emax has to be greater than emin")
        return value

    @field_validator("ne")
    @classmethod
    def check_ne(cls, value: int) -> int:
        if value <= 1:
            raise ValueError("ne has to be greater than 1")
        return value


class IterationConvergenceSettings(PydanticBaseModel):
    nprint: PositiveInt = 20
    niterx: PositiveInt = 1000
    transfer_thr: NonNegativeFloat = 1e-12

    @field_validator("nprint")
    @classmethod
    def check_nprint(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("nprint has to be greater than 0")
        return value

    @field_validator("niterx")
    @classmethod
    def check_niterx(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("niterx has to be greater than 0")
        return value

    @field_validator("transfer_thr")
    @classmethod
    def check_transfer_thr(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("invalid value for transfer_thr")
        return value


class AdvancedSettings(PydanticBaseModel):
    leads_are_identical: bool = False
    compute_dos: bool = False
    max_workers: PositiveInt = 1
    log_enabled: bool = False
    singular_threshold: NonNegativeFloat = 1e-14

    @field_validator("max_workers")
    @classmethod
    def check_max_workers(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("max_workers has to be greater than 0")
        return value


class TransmissionData(PydanticBaseModel):
    file_names: FileNamesData
    energy: EnergySettings
    iteration: IterationConvergenceSettings
    advanced: AdvancedSettings
    block_sizes: Optional[List[PositiveInt]] = None
    direction: TransportDirectionName = "left_to_right"

    def __init__(self, filename: str = "", *, validate: bool = True, **data: Any) -> None:
        def filter_keys(cls, d):
            return {k: d[k] for k in cls.model_fields if k in d}

        data["file_names"] = FileNamesData(**filter_keys(FileNamesData, data))
        data["energy"] = EnergySettings(**filter_keys(EnergySettings, data))
        data["iteration"] = IterationConvergenceSettings(
            **filter_keys(IterationConvergenceSettings, data)
        )
        data["advanced"] = AdvancedSettings(**filter_keys(AdvancedSettings, data))
        known = set(type(self).model_fields)
        for group in (
            FileNamesData,
            EnergySettings,
            IterationConvergenceSettings,
            AdvancedSettings,
        ):
            known |= set(group.model_fields)
        unknown = sorted(k for k in data if k not in known)
        if unknown:
            raise ValueError(f"Unknown input keys in {filename or 'input'}: {unknown}")
        data = {k: v for k, v in data.items() if k in type(self).model_fields}
        super().__init__(**data)
        if validate:
            self.validate_input()

    @field_validator("block_sizes")
    @classmethod
    def check_block_sizes(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        if value is not None and len(value) == 0:
            return None
        return value

    def validate_input(self) -> None:
        if self.energy.emax <= self.energy.emin:
            raise ValueError("emax has to be greater than emin")
