import math

EARTH_RADIUS_KM = 6371.0

BASE_FARE = 50.0
PER_KM_RATES = {
    "standard": 20.0,
    "premium": 25.0,
    "shared": 15.0,
}


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in kilometres"""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2)
    # rounding can push a just past 1 for antipodal points
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def estimate_fare(distance_km: float, ride_type: str = "standard") -> float:
    if ride_type not in PER_KM_RATES:
        raise ValueError(f"Unknown ride type: {ride_type}")
    return round(BASE_FARE + max(distance_km, 0.0) * PER_KM_RATES[ride_type], 2)


def quote(pickup, destination, ride_type: str = "standard"):
    """Return (distance in km, estimated fare) for a pickup/destination pair"""
    distance = haversine_km(pickup.latitude, pickup.longitude, destination.latitude, destination.longitude)
    return round(distance, 2), estimate_fare(distance, ride_type)
