"""
Typed views over the free-form JSON metadata carried by remediation actions.

The detection process writes camelCase keys (``fixResult``, ``rejectionReason``);
these models read them by alias and keep every unknown key on round-trip.
"""
from typing import Optional
from pydantic import BaseModel, Field, StrictBool


class ReversibilityInfo(BaseModel):
    reversible: StrictBool = False

    class Config:
        extra = "allow"


class FixResult(BaseModel):
    metadata: Optional[ReversibilityInfo] = None

    class Config:
        extra = "allow"


class ActionMetadata(BaseModel):
    """Metadata blob of a RemediationAction."""
    fix_result: Optional[FixResult] = Field(None, alias="fixResult")
    rejection_reason: Optional[str] = Field(None, alias="rejectionReason")

    class Config:
        extra = "allow"
        populate_by_name = True

    @property
    def reversible(self) -> bool:
        if self.fix_result is None or self.fix_result.metadata is None:
            return False
        return self.fix_result.metadata.reversible is True
