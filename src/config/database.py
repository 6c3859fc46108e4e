from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie
from src.models.userModel import User
from src.models.bookingModel import Booking
from src.models.timeOffModel import TimeOffBlock
from src.models.reviewModel import Review
from src.models.serviceModel import Service
from src.models.providerModel import Provider
from src.models.providerApplicationModel import ProviderApplication
from src.models.earningModel import ProviderEarning
from .settings import settings


# Call this from within your event loop to get beanie setup.
async def startDB():
    # Create Motor client
    client = AsyncIOMotorClient(settings.MONGO_URI, uuidRepresentation="standard")
    database = client[settings.MONGO_DATABASE]

    await init_beanie(database=database,
                      document_models=[User, Booking, TimeOffBlock, Review, Service, Provider,
                                       ProviderApplication, ProviderEarning]
                      )
