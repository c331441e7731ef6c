import logging

import cloudinary
import cloudinary.uploader

from config import CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET, CLOUDINARY_CLOUD_NAME

logger = logging.getLogger(__name__)

PRODUCT_FOLDER = "products"

cloudinary.config(
    cloud_name=CLOUDINARY_CLOUD_NAME,
    api_key=CLOUDINARY_API_KEY,
    api_secret=CLOUDINARY_API_SECRET,
    secure=True,
)


def asset_id_from_url(url: str) -> str:
    # https://res.cloudinary.com/<cloud>/image/upload/v123/products/abc.jpg -> abc
    return url.rsplit("/", 1)[-1].split(".", 1)[0]


class ImageHost:
    """Uploads product images to Cloudinary under a single folder."""

    def __init__(self, folder: str = PRODUCT_FOLDER):
        self.folder = folder

    def upload(self, image: str) -> str:
        result = cloudinary.uploader.upload(image, folder=self.folder)
        return result["secure_url"]

    def delete(self, url: str) -> None:
        public_id = f"{self.folder}/{asset_id_from_url(url)}"
        cloudinary.uploader.destroy(public_id)
        logger.info(f"Deleted hosted image {public_id}")


_image_host = ImageHost()


def get_image_host() -> ImageHost:
    return _image_host
