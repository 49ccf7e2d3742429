"""File Upload Pipeline - Move selected files into durable storage"""
from typing import List

from ..domain.models import LocalFile, UploadedAttachment
from ..domain.errors import ApiError, UploadError
from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)


class FileUploadPipeline:
    """
    Upload files one at a time and keep the resulting attachment references

    selected_files and attachments stay index-aligned: every selected file
    has exactly one attachment. A failed batch drops the failing file and the
    ones after it; earlier successes are kept.
    """

    def __init__(self, api_client, project_id: str):
        self.api_client = api_client
        self.project_id = project_id
        self.selected_files: List[LocalFile] = []
        self.attachments: List[UploadedAttachment] = []

    async def upload(self, files: List[LocalFile]) -> List[UploadedAttachment]:
        """
        Upload a batch sequentially

        Raises:
            UploadError: On the first failed file; naming it
        """
        uploaded: List[UploadedAttachment] = []

        for index, file in enumerate(files):
            file_type = file.content_type or settings.upload_default_content_type
            try:
                target = await self.api_client.request_upload_target(
                    self.project_id, file.name, file_type, file.size
                )
                await self.api_client.upload_bytes(target.url, file.content, file_type)
            except ApiError as e:
                skipped = [f.name for f in files[index + 1:]]
                logger.error(
                    f"Failed to upload file: {file.name}",
                    extra={"project_id": self.project_id, "file_name": file.name}
                )
                raise UploadError(
                    f"Failed to upload file: {file.name}",
                    file_name=file.name,
                    details={
                        "uploaded": [a.file_name for a in uploaded],
                        "skipped": skipped,
                        "reason": e.message,
                    }
                ) from e

            attachment = UploadedAttachment(
                file_name=file.name,
                file_size=file.size,
                file_type=file_type,
                object_path=target.object_path
            )
            self.selected_files.append(file)
            self.attachments.append(attachment)
            uploaded.append(attachment)

        logger.info(
            f"Uploaded {len(uploaded)} file(s)",
            extra={"project_id": self.project_id}
        )
        return uploaded

    def remove(self, index: int) -> None:
        if index < 0 or index >= len(self.attachments):
            raise IndexError(f"No attachment at position {index}")
        del self.selected_files[index]
        del self.attachments[index]

    def reset(self) -> None:
        self.selected_files = []
        self.attachments = []
