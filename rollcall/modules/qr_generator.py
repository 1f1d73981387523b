"""
QR Code Generator Module - Roll Call QR Attendance System

This module produces the scannable identity token for each student: a PNG QR
code whose payload is exactly the student's roll string, stored at
``<output_dir>/<roll>.png``.

Image generation is a best-effort side effect of registering or renaming a
student. BackgroundQREncoder runs it on a worker thread so a slow or failing
encoder never delays or fails the registry write; failures are logged only.

Features:
- QR code generation with configurable error correction and border
- Fixed pixel width output images
- Path derivation from the roll
- Background queue for fire-and-forget encoding
"""

import io
import os
import logging
import threading
from queue import Queue
from typing import Optional

import qrcode
from qrcode.exceptions import DataOverflowError
from PIL import Image
from werkzeug.utils import secure_filename

from rollcall.modules.exceptions import ImageEncodeError

ERROR_CORRECTION_LEVELS = {
    'L': qrcode.constants.ERROR_CORRECT_L,  # ~7% error correction
    'M': qrcode.constants.ERROR_CORRECT_M,  # ~15% error correction
    'Q': qrcode.constants.ERROR_CORRECT_Q,  # ~25% error correction
    'H': qrcode.constants.ERROR_CORRECT_H,  # ~30% error correction
}


class QRGenerator:
    """
    Synchronous QR image encoder keyed by roll.
    """

    def __init__(self, output_dir: str, width: int = 300, border: int = 4,
                 error_correction: str = 'M'):
        """
        Initialize the QR code generator.

        Args:
            output_dir (str): Directory the PNG files are written to
            width (int): Output image width and height in pixels
            border (int): Quiet zone size in modules
            error_correction (str): One of L, M, Q, H
        """
        self.logger = logging.getLogger(__name__)
        self.output_dir = str(output_dir)

        if error_correction not in ERROR_CORRECTION_LEVELS:
            raise ValueError(f"Unknown error correction level: {error_correction}")

        self.settings = {
            'error_correction': ERROR_CORRECTION_LEVELS[error_correction],
            'border': border,
            'width': width,
            'fill_color': 'black',
            'back_color': 'white'
        }

    def path_for(self, roll: str) -> str:
        """
        Get the file path of the QR image for a roll.

        Raises:
            ImageEncodeError: If the roll cannot be used as a file name
        """
        if not roll or secure_filename(roll) != roll:
            raise ImageEncodeError(f"Roll is not usable as a file name: {roll!r}")
        return os.path.join(self.output_dir, f"{roll}.png")

    def generate_image(self, roll: str) -> Image.Image:
        """
        Build the QR image for a roll without touching the file system.

        Args:
            roll (str): Value encoded into the QR code

        Returns:
            Image.Image: Square image of the configured width
        """
        qr = qrcode.QRCode(
            version=None,
            error_correction=self.settings['error_correction'],
            box_size=10,
            border=self.settings['border']
        )
        qr.add_data(roll)
        qr.make(fit=True)

        img = qr.make_image(
            fill_color=self.settings['fill_color'],
            back_color=self.settings['back_color']
        )

        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        buffer.seek(0)

        width = self.settings['width']
        return Image.open(buffer).convert('RGB').resize(
            (width, width), Image.Resampling.NEAREST
        )

    def encode(self, roll: str) -> str:
        """
        Write the QR image for a roll to disk.

        Args:
            roll (str): Student roll

        Returns:
            str: Path of the written PNG file

        Raises:
            ImageEncodeError: If the image could not be produced or written
        """
        file_path = self.path_for(roll)

        try:
            os.makedirs(self.output_dir, exist_ok=True)
            image = self.generate_image(roll)
            image.save(file_path, format='PNG')
        except (OSError, ValueError, DataOverflowError) as e:
            raise ImageEncodeError(f"QR generation failed for {roll}: {e}") from e

        self.logger.info(f"QR code saved to {file_path}")
        return file_path


class BackgroundQREncoder:
    """
    Fire-and-forget wrapper around a QR encoder.

    ``encode`` only queues the roll; a daemon thread performs the work and
    logs failures. Callers never see an ImageEncodeError.
    """

    def __init__(self, encoder: QRGenerator):
        self.encoder = encoder
        self.logger = logging.getLogger(__name__)
        self.queue = Queue()

        self.worker = threading.Thread(
            target=self._process_queue,
            name='qr-encoder',
            daemon=True
        )
        self.worker.start()

    def path_for(self, roll: str) -> str:
        return self.encoder.path_for(roll)

    def encode(self, roll: str) -> None:
        """Queue a roll for QR generation and return immediately."""
        self.queue.put(roll)

    def _process_queue(self) -> None:
        """Background thread draining the encode queue."""
        while True:
            roll = self.queue.get()
            try:
                if roll is None:  # Shutdown signal
                    break
                self.encoder.encode(roll)
            except ImageEncodeError as e:
                self.logger.error(f"QR gen error: {str(e)}")
            except Exception:
                self.logger.exception(f"Unexpected QR gen failure for {roll!r}")
            finally:
                self.queue.task_done()

    def wait_until_idle(self) -> None:
        """Block until every queued roll has been processed."""
        self.queue.join()

    def shutdown(self, timeout: Optional[float] = 5) -> None:
        """Stop the worker after the queued rolls are processed."""
        self.queue.put(None)
        if self.worker.is_alive():
            self.worker.join(timeout=timeout)
        self.logger.info("QR encoder worker stopped")
