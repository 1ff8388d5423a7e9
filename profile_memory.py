from memory_profiler import profile
from tranquility.main import app
from fastapi.testclient import TestClient

# Create a test client for the FastAPI app
client = TestClient(app)


@profile
def run_scenario():
    """
    Simple scenario to exercise the public catalogue endpoints while
    tracking memory. Nothing is asserted here; it only feeds the profiler.
    """
    client.get("/health")
    client.get("/rooms/")
    client.get("/rooms/", params={"sort_by": "price", "sort_order": "asc"})
    client.get("/room-types/")
    client.get("/amenities/")
    client.get("/api/v1/rooms/")


if __name__ == "__main__":
    run_scenario()
