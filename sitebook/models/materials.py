"""
SiteBook
Material stock models.

Stock on hand for a material at a project is sum(in) - sum(out) over its
approved ledger entries.
"""

from sitebook.models import db
from sitebook.models.base import ApprovableMixin, OrgScopedModel

MOVEMENT_TYPES = {"in", "out"}


class Material(ApprovableMixin, OrgScopedModel):
    __tablename__ = "materials"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    unit = db.Column(db.String(30), nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "name": self.name,
            "unit": self.unit,
            **self.approval_dict(),
        }


class MaterialLedgerEntry(ApprovableMixin, OrgScopedModel):
    __tablename__ = "material_ledger_entries"

    id = db.Column(db.Integer, primary_key=True)
    material_id = db.Column(
        db.Integer, db.ForeignKey("materials.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    date = db.Column(db.Date, nullable=False)
    type = db.Column(db.String(5), nullable=False, comment="in | out")
    quantity = db.Column(db.Float, nullable=False)
    description = db.Column(db.Text, nullable=True)
    challan_url = db.Column(db.String(500), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "material_id": self.material_id,
            "project_id": self.project_id,
            "date": self.date.isoformat() if self.date else None,
            "type": self.type,
            "quantity": self.quantity,
            "description": self.description,
            "challan_url": self.challan_url,
            **self.approval_dict(),
        }
