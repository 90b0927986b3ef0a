"""Base class for ONNX Runtime inference with GPU/TensorRT/oneDNN support."""

import logging
from pathlib import Path
from typing import List, Optional, Union

import onnxruntime

from .config import SessionConfig
from .errors import ConfigurationError, StageInferenceError

logger = logging.getLogger(__name__)


class ONNXInferenceBase:
    """Base class for ONNX inference with hardware acceleration."""

    def __init__(
        self,
        model_path: Union[str, Path],
        config: Optional[SessionConfig] = None,
        stage: str = "",
    ):
        """Initialize ONNX Runtime session.

        Args:
            model_path: Path to ONNX model file
            config: Provider and threading options (uses defaults if None)
            stage: Short stage name ("det", "cls", "rec") used in errors

        Raises:
            ConfigurationError: if the model is missing or cannot be loaded
        """
        if config is None:
            config = SessionConfig()

        self.stage = stage
        self.model_path = Path(model_path)
        if not self.model_path.is_file():
            raise ConfigurationError(f"Model not found: {model_path}")

        providers = self._get_providers(config)

        sess_options = onnxruntime.SessionOptions()
        sess_options.intra_op_num_threads = config.cpu_threads
        sess_options.log_severity_level = 3

        try:
            self.session = onnxruntime.InferenceSession(
                str(self.model_path),
                sess_options,
                providers=providers,
            )
        except Exception as e:
            raise ConfigurationError(
                f"Failed to load {stage or 'ONNX'} model {self.model_path}: {e}"
            ) from e

        logger.debug("Loaded %s model %s with providers %s", stage, self.model_path, providers)

        # Cache input/output names
        self.input_names = [node.name for node in self.session.get_inputs()]
        self.output_names = [node.name for node in self.session.get_outputs()]

    def _get_providers(self, config: SessionConfig) -> List:
        """Get execution providers based on hardware availability.

        Priority: TensorRT > CUDA > oneDNN > CPU
        """
        available_providers = onnxruntime.get_available_providers()
        providers = []

        if config.use_tensorrt and "TensorrtExecutionProvider" in available_providers:
            providers.append(('TensorrtExecutionProvider', {}))

        if config.use_gpu:
            if "CUDAExecutionProvider" in available_providers:
                providers.append((
                    'CUDAExecutionProvider',
                    {"cudnn_conv_algo_search": "DEFAULT"}
                ))
            else:
                logger.warning("CUDA requested but CUDAExecutionProvider is unavailable, using CPU")

        if config.enable_mkldnn and "DnnlExecutionProvider" in available_providers:
            providers.append('DnnlExecutionProvider')

        # CPU (always available as fallback)
        providers.append('CPUExecutionProvider')

        return providers

    def output_width(self) -> Optional[int]:
        """Static size of the last axis of the first output, if the model declares one."""
        shape = self.session.get_outputs()[0].shape
        if shape and isinstance(shape[-1], int):
            return shape[-1]
        return None

    def run(self, input_data: dict) -> List:
        """Run inference on input data.

        Args:
            input_data: Dictionary mapping input names to numpy arrays

        Returns:
            List of output arrays

        Raises:
            StageInferenceError: if the runtime rejects the input or fails
        """
        try:
            return self.session.run(self.output_names, input_feed=input_data)
        except Exception as e:
            raise StageInferenceError(
                f"{self.stage or 'ONNX'} inference failed: {e}", stage=self.stage
            ) from e

    def get_input_feed(self, image_array):
        """Create input feed dictionary.

        Args:
            image_array: Numpy array or list of arrays

        Returns:
            Dictionary mapping input names to arrays
        """
        if len(self.input_names) == 1:
            return {self.input_names[0]: image_array}
        else:
            # For multiple inputs
            return {
                name: image_array[i]
                for i, name in enumerate(self.input_names)
            }
