from pydantic import BaseModel, ConfigDict, Field

from imaging.constants import DERIVATIVE_READY_EVENT


class ImageDerivativeReady(BaseModel):
    """SQS event: one native-format derivative has been written."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    event: str = DERIVATIVE_READY_EVENT
    image_type: str = Field(alias="imageType")
    base_name: str = Field(alias="baseName")
    image_variant: str = Field(alias="imageVariant")
    url: str
