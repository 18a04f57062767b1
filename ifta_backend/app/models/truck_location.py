"""
Truck Location database model.

Stores GPS pings used as the live location of a truck.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime
from sqlalchemy.sql import func
from ifta_backend.app.db.session import Base


class TruckLocation(Base):
    """
    Truck Location model.
    
    Records GPS coordinates reported from the driver's device.
    The most recent ping is the truck's current position.
    """
    __tablename__ = "truck_locations"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    truck_identifier = Column(String(50), nullable=False, index=True)
    
    # GPS coordinates
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    accuracy_meters = Column(Float, nullable=True)  # GPS accuracy in meters
    
    # Timing
    recorded_at = Column(DateTime(timezone=True), nullable=False, index=True)  # When GPS was recorded
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)  # When inserted to DB
    
    def __repr__(self):
        return f"<TruckLocation(truck='{self.truck_identifier}', lat={self.latitude}, lng={self.longitude})>"
