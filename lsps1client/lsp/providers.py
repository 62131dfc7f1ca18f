from pydantic import BaseModel, ConfigDict
from typing import List, Optional

from lsps1client.lsp.adapters import ProtocolAdapter, get_adapter
from lsps1client.lsp.errors import ConfigurationError
from lsps1client.settings import ProviderSettings


class LspProvider(BaseModel):
    model_config = ConfigDict(frozen=True)

    slug: str
    name: str
    url: str
    adapter_version: str = 'lsps1-v1'

    @property
    def base_url(self) -> str:
        # httpx joins relative paths onto a base url only if it ends with /
        return self.url.rstrip('/') + '/'

    @property
    def adapter(self) -> ProtocolAdapter:
        return get_adapter(self.adapter_version)


KNOWN_PROVIDERS: List[LspProvider] = [
    LspProvider(
        slug='megalith-lsp',
        name='Megalith LSP',
        url='https://megalithic.me/api/lsps1/v1',
    ),
    LspProvider(
        slug='olympus-lsp',
        name='Olympus LSP',
        url='https://lsps1.lnolymp.us/api/v1',
    ),
    LspProvider(
        slug='flashsats-lsp',
        name='Flashsats LSP',
        url='https://lsp.flashsats.xyz/api/v1',
    ),
]


def slugify(name: str) -> str:
    return name.lower().replace(' ', '-').replace('.', '') + '-lsp'


def available_providers(settings: Optional[ProviderSettings] = None) -> List[LspProvider]:
    settings = settings or ProviderSettings()
    providers = list(KNOWN_PROVIDERS)
    if settings.custom_lsp_url is not None:
        providers.append(LspProvider(
            slug=slugify(settings.custom_lsp_name),
            name=settings.custom_lsp_name,
            url=settings.custom_lsp_url.unicode_string(),
            adapter_version=settings.custom_lsp_adapter,
        ))
    return providers


def get_provider(
        slug: Optional[str] = None,
        settings: Optional[ProviderSettings] = None) -> LspProvider:
    """
    resolve a provider by slug, an empty slug means the configured default;
    fails before anything is sent if the slug or its adapter is unknown
    """
    settings = settings or ProviderSettings()
    slug = slug or settings.lsp_provider
    for provider in available_providers(settings):
        if provider.slug == slug:
            # surface a bad adapter version now rather than mid-order
            get_adapter(provider.adapter_version)
            return provider
    known = [p.slug for p in available_providers(settings)]
    raise ConfigurationError(f'unknown LSP {slug!r}, expected one of {known}')
