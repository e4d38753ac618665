# qrcheckin/scanner/camera.py
import logging
import time

import cv2

from qrcheckin.exceptions import InvalidScannerTransition, QRNotFoundError
from qrcheckin.scanner.state import ScannerState, ScannerStateMachine
from qrcheckin.services.qr_decoder import QRDecoder, RasterFrame

logger = logging.getLogger(__name__)


def opencv_frames(device=0, width=640, height=480):
    """Yield BGR frames from a webcam until it stops delivering them."""
    cap = cv2.VideoCapture(device)
    if not cap.isOpened():
        raise RuntimeError(f"Could not open camera {device}")

    cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    try:
        while True:
            ok, frame = cap.read()
            if not ok:
                logger.warning("Camera %s returned no frame, stopping", device)
                return
            yield frame
    finally:
        cap.release()


class CameraScanner:
    """
    Live scanning loop: sample frames at `fps`, decode, hand each payload
    to `handler` and pause while its result is displayed.

    `handler(payload)` returns whatever should be displayed (usually a
    ScanResult). If it raises, the error is displayed instead and scanning
    resumes after the shorter error delay.
    """

    def __init__(self, handler, decoder=None, machine=None, fps=10,
                 on_result=None, sleep=None):
        self.handler   = handler
        self.decoder   = decoder or QRDecoder()
        self.machine   = machine or ScannerStateMachine()
        self.fps       = fps
        self.on_result = on_result
        self.sleep     = sleep or time.sleep
        self._stopped  = False

    @classmethod
    def from_config(cls, config, handler, **kwargs):
        kwargs.setdefault('decoder', QRDecoder.from_config(config))
        kwargs.setdefault('machine', ScannerStateMachine.from_config(config))
        return cls(handler, fps=config.get('SCANNER_FPS', 10), **kwargs)

    def stop(self):
        self._stopped = True
        if self.machine.state is not ScannerState.IDLE:
            self.machine.stop()

    def process_frame(self, frame):
        """
        Feed one RasterFrame through the loop. Returns the handler result
        when a code was read and handled, otherwise None.
        """
        self.machine.tick()
        if not self.machine.is_scanning:
            return None

        try:
            decoded = self.decoder.decode(frame, fallback=False)
        except QRNotFoundError:
            return None

        if self._stopped:
            return None

        try:
            result = self.handler(decoded.text)
            failed = False
        except Exception as e:
            logger.error("Scan handler failed: %s", e)
            result = e
            failed = True

        try:
            self.machine.frame_decoded(result, failed=failed)
        except InvalidScannerTransition:
            # stop() ran while the handler was busy
            if not self._stopped:
                raise
            return None
        if self.on_result:
            self.on_result(result)
        return result

    def run(self, frames):
        """
        Consume BGR frames (e.g. from opencv_frames()) until the source is
        exhausted or stop() is called.
        """
        self._stopped = False
        self.machine.start()
        interval = 1.0 / self.fps if self.fps else 0
        handled = 0

        try:
            for raw in frames:
                if self._stopped:
                    break
                if self.process_frame(RasterFrame.from_bgr(raw)) is not None:
                    handled += 1
                if interval:
                    self.sleep(interval)
        finally:
            if self.machine.state is not ScannerState.IDLE:
                self.machine.stop()

        logger.info("Camera scanner stopped after %d codes", handled)
        return handled
