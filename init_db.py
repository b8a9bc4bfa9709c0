from sprintflow.utils.db import engine, init_db
# Import all models to ensure they are registered with SQLModel
from sprintflow.schema import *

if __name__ == "__main__":
    print("Creating database tables...")
    init_db(engine)
    print("Tables created successfully.")
