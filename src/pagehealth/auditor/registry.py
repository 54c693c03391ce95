# src/pagehealth/auditor/registry.py
import importlib
import logging
import pkgutil
from typing import Dict, List, Optional, Type

from pagehealth.auditor.core import ValidatorBase
from pagehealth.exceptions import ConfigurationError
from pagehealth.model import ValidatorDescriptor

logger = logging.getLogger(__name__)


class ValidatorRegistry:
    """
    Maps validator ids from the declarative check list to validator classes.

    Discovers modules in the 'pagehealth.auditor.validators' package that
    expose a `VALIDATOR` attribute (a ValidatorBase subclass).
    """

    _validators: Dict[str, Type[ValidatorBase]] = {}
    _loaded: bool = False

    @classmethod
    def discover(cls) -> None:
        if cls._loaded:
            return

        try:
            import pagehealth.auditor.validators as validators_pkg

            for _, name, _ in pkgutil.iter_modules(validators_pkg.__path__):
                full_name = f"pagehealth.auditor.validators.{name}"
                try:
                    module = importlib.import_module(full_name)
                    validator_cls = getattr(module, "VALIDATOR", None)
                    if isinstance(validator_cls, type) and issubclass(validator_cls, ValidatorBase):
                        cls.register(validator_cls)
                except Exception as e:
                    logger.error(f"Error loading validator module {name}: {e}")

            cls._loaded = True
        except ImportError as e:
            logger.error(f"Could not find validators package: {e}")

    @classmethod
    def register(cls, validator_cls: Type[ValidatorBase]) -> None:
        cls._validators[validator_cls.validator_id] = validator_cls
        logger.debug(f"Validator registered: {validator_cls.validator_id}")

    @classmethod
    def get(cls, validator_id: str) -> Optional[Type[ValidatorBase]]:
        cls.discover()
        return cls._validators.get(validator_id)

    @classmethod
    def available_ids(cls) -> List[str]:
        cls.discover()
        return sorted(cls._validators)

    @classmethod
    def build(cls, descriptor: ValidatorDescriptor, config: Optional[Dict] = None, http=None) -> ValidatorBase:
        """Instantiates the validator configured under `descriptor.id`."""
        validator_cls = cls.get(descriptor.id)
        if validator_cls is None:
            raise ConfigurationError(
                f"Unknown validator id '{descriptor.id}'. Available: {', '.join(cls.available_ids())}"
            )
        return validator_cls(descriptor, config=config, http=http)
