from django.conf import settings
from rest_framework.routers import DefaultRouter
from rest_framework.routers import SimpleRouter

from chat_sync.conversations.api.views import MessageViewSet

router = DefaultRouter() if settings.DEBUG else SimpleRouter()

router.register("messages", MessageViewSet, basename="messages")


app_name = "api"
urlpatterns = router.urls
