"""
Pipeline orchestrator using LangGraph.

Coordinates the brand profile run: one base-profile model call, then an
optional chain of enrichment stages, each consuming only fields computed
before it.

Graph structure:
    generate_base_profile --(enhance=false)--> END
            |
            v
    derive_seeds -> infer_region -> infer_regional_context -> fetch_knowledge
            -> resolve_competitors -> infer_personas -> extract_products
            -> assemble_profile -> END

Only invalid input and an unparseable base profile stop a run. Every
enrichment stage recovers locally and reports degradation through its
``*_source`` field.
"""

import json
import time
from functools import wraps
from typing import Any, Callable, Literal, Mapping, Optional, TypedDict
from uuid import uuid4

from langgraph.graph import END, StateGraph

from brand_profile.config.settings import Settings, get_settings
from brand_profile.extractors.product_extractor import ProductExtractor
from brand_profile.inference.competitor_inference import (
    CompetitorInferenceService,
    competitors_from_caller,
)
from brand_profile.inference.persona_inference import PersonaInferenceService
from brand_profile.inference.prompts import get_prompt
from brand_profile.inference.regional_context import RegionalContextService
from brand_profile.models.schemas import (
    BrandProfile,
    CompetitorInferenceResult,
    CompetitorSource,
    ExtractionResult,
    PersonaInferenceResult,
    PipelineParams,
    ProductsCatalogue,
    RegionalContext,
    RegionInference,
)
from brand_profile.services.http_service import HttpFetcher
from brand_profile.services.knowledge_service import KnowledgeSourceClient
from brand_profile.services.llm_service import ClaudeService, CompletionClient, parse_json_object
from brand_profile.services.validation_service import UNKNOWN_BRAND, ValidationService
from brand_profile.utils.formatters import render_template
from brand_profile.utils.logger import LogContext, get_logger
from brand_profile.utils.retry import (
    AppError,
    ModelOutputError,
    ModelResponseParseError,
    PipelineError,
)

logger = get_logger(__name__)


DEFAULT_INDUSTRY = "General business"


# =============================================================================
# Pipeline State Definition (TypedDict for LangGraph)
# =============================================================================

class ProfileStateDict(TypedDict, total=False):
    """
    Run state passed between graph nodes.

    All fields are optional; each node returns only the keys it sets.
    """
    # Identifiers and input
    run_id: str
    base_url: str
    params: PipelineParams
    raw_params: dict

    # Base profile
    base_profile: dict

    # Seeds
    brand_name: str
    industry: str
    target_audience: str

    # Stage outputs
    region: RegionInference
    regional_context: RegionalContext
    knowledge_summary: Optional[str]
    competitors: CompetitorInferenceResult
    personas: PersonaInferenceResult
    products: ExtractionResult

    # Result
    profile_document: dict
    step_timings: dict  # Node name -> duration_ms


# =============================================================================
# Decorators for Node Execution
# =============================================================================

def track_timing(func: Callable):
    """Decorator to track node execution timing."""
    @wraps(func)
    async def wrapper(self, state: ProfileStateDict) -> dict[str, Any]:
        start_time = time.time()
        node_name = func.__name__.strip("_").replace("_node", "")

        logger.debug("Starting node", node=node_name)

        try:
            result = await func(self, state)
        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error("Node failed", node=node_name, duration_ms=duration_ms, error=str(e))
            raise

        duration_ms = int((time.time() - start_time) * 1000)
        step_timings = dict(state.get("step_timings") or {})
        step_timings[node_name] = duration_ms
        result["step_timings"] = step_timings

        logger.debug("Completed node", node=node_name, duration_ms=duration_ms)
        return result

    return wrapper


def _first_text(*values: Any) -> Optional[str]:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _section(profile: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    section = profile.get(key)
    return section if isinstance(section, Mapping) else {}


# =============================================================================
# Main Pipeline Class
# =============================================================================

class BrandProfilePipeline:
    """
    LangGraph-based pipeline producing an enriched brand profile.

    Collaborators are created lazily from settings unless injected.

    Example:
        >>> async with BrandProfilePipeline() as pipeline:
        ...     document = await pipeline.run("https://acme.de", {"enhance": True})
        ...     print(document["country_code"], document["competitors_source"])
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        llm: Optional[CompletionClient] = None,
        http: Optional[HttpFetcher] = None,
        knowledge: Optional[KnowledgeSourceClient] = None,
        regional_service: Optional[RegionalContextService] = None,
        competitor_service: Optional[CompetitorInferenceService] = None,
        persona_service: Optional[PersonaInferenceService] = None,
        product_extractor: Optional[ProductExtractor] = None,
        validator: Optional[ValidationService] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            settings: Application settings (uses defaults if not provided)
            llm: Completion client shared by every model-backed stage
            http: HTTP fetcher for sitemap and knowledge lookups
            knowledge: Wikipedia/Wikidata adapter
            regional_service: Region and regional context stage
            competitor_service: Competitor stage
            persona_service: Persona stage
            product_extractor: Product catalogue stage
            validator: Input validation
        """
        self._settings = settings
        self._llm = llm
        self._http = http
        self._knowledge = knowledge
        self._regional_service = regional_service
        self._competitor_service = competitor_service
        self._persona_service = persona_service
        self._product_extractor = product_extractor
        self.validator = validator or ValidationService()

        # Only clients created here are closed here
        self._owned_llm: Optional[ClaudeService] = None
        self._owned_http: Optional[HttpFetcher] = None

        self._graph = self._build_graph()

    async def __aenter__(self):
        """Async context manager entry."""
        self._initialize_services()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    def _initialize_services(self) -> None:
        """Create any collaborator that was not injected."""
        if self._llm is None:
            self._owned_llm = ClaudeService(self.settings)
            self._llm = self._owned_llm

        needs_http = self._knowledge is None or self._product_extractor is None
        if self._http is None and needs_http:
            self._owned_http = HttpFetcher(settings=self.settings)
            self._http = self._owned_http

        if self._knowledge is None:
            self._knowledge = KnowledgeSourceClient(http=self._http, settings=self.settings)
        if self._regional_service is None:
            self._regional_service = RegionalContextService(self._llm)
        if self._competitor_service is None:
            self._competitor_service = CompetitorInferenceService(self._llm)
        if self._persona_service is None:
            self._persona_service = PersonaInferenceService(self._llm)
        if self._product_extractor is None:
            self._product_extractor = ProductExtractor(
                llm=self._llm,
                http=self._http,
                knowledge=self._knowledge,
                settings=self.settings,
            )

    def _build_graph(self):
        graph = StateGraph(ProfileStateDict)

        graph.add_node("generate_base_profile", self._generate_base_profile_node)
        graph.add_node("derive_seeds", self._derive_seeds_node)
        graph.add_node("infer_region", self._infer_region_node)
        graph.add_node("infer_regional_context", self._infer_regional_context_node)
        graph.add_node("fetch_knowledge", self._fetch_knowledge_node)
        graph.add_node("resolve_competitors", self._resolve_competitors_node)
        graph.add_node("infer_personas", self._infer_personas_node)
        graph.add_node("extract_products", self._extract_products_node)
        graph.add_node("assemble_profile", self._assemble_profile_node)

        graph.set_entry_point("generate_base_profile")

        graph.add_conditional_edges(
            "generate_base_profile",
            self._route_after_base_profile,
            {
                "enhance": "derive_seeds",
                "done": END,
            },
        )

        graph.add_edge("derive_seeds", "infer_region")
        graph.add_edge("infer_region", "infer_regional_context")
        graph.add_edge("infer_regional_context", "fetch_knowledge")
        graph.add_edge("fetch_knowledge", "resolve_competitors")
        graph.add_edge("resolve_competitors", "infer_personas")
        graph.add_edge("infer_personas", "extract_products")
        graph.add_edge("extract_products", "assemble_profile")
        graph.add_edge("assemble_profile", END)

        return graph.compile()

    def _route_after_base_profile(self, state: ProfileStateDict) -> Literal["enhance", "done"]:
        params = state.get("params")
        if params is not None and not params.enhance:
            return "done"
        return "enhance"

    # =========================================================================
    # Node Implementations
    # =========================================================================

    @track_timing
    async def _generate_base_profile_node(self, state: ProfileStateDict) -> dict[str, Any]:
        """
        Node 1: One model call producing the base profile.

        Raises:
            ModelOutputError: If the model returned content that is not a JSON object
        """
        prompt = get_prompt("brand-profile/system")
        user_prompt = render_template(prompt["user_template"], {
            "baseURL": state["base_url"],
            "params": json.dumps(state.get("raw_params") or {}, default=str),
        })

        completion = await self._llm.complete(
            user_prompt,
            system_prompt=prompt["system"],
            response_format="json_object",
            temperature=self.settings.base_profile_temperature,
        )

        try:
            base_profile = parse_json_object(completion)
        except ModelResponseParseError as e:
            logger.error(
                "Failed to parse base profile",
                error=e.message,
                content_preview=(completion.content or "")[:500],
            )
            raise ModelOutputError("brand-profile: invalid JSON returned by model") from e

        logger.info("Base profile generated", keys=sorted(base_profile.keys()))
        return {"base_profile": base_profile, "profile_document": base_profile}

    @track_timing
    async def _derive_seeds_node(self, state: ProfileStateDict) -> dict[str, Any]:
        """Node 2: Brand name, industry and audience seeds with fallback chains."""
        base_profile = state.get("base_profile") or {}
        main = _section(base_profile, "main_profile")
        competitive = _section(base_profile, "competitive_context")

        brand_name = _first_text(main.get("brand_name"), competitive.get("brand_name"))
        if brand_name is None:
            brand_name = self.validator.brand_name_from_url(state["base_url"])
            if brand_name == UNKNOWN_BRAND:
                logger.warning("No brand name in profile or URL", base_url=state["base_url"])

        industry = _first_text(competitive.get("industry"), main.get("industry")) or DEFAULT_INDUSTRY
        target_audience = _first_text(main.get("target_audience")) or ""

        logger.info("Seeds derived", brand_name=brand_name, industry=industry)
        return {
            "brand_name": brand_name,
            "industry": industry,
            "target_audience": target_audience,
        }

    @track_timing
    async def _infer_region_node(self, state: ProfileStateDict) -> dict[str, Any]:
        region = await self._regional_service.infer_region_from_url(state["base_url"])
        return {"region": region}

    @track_timing
    async def _infer_regional_context_node(self, state: ProfileStateDict) -> dict[str, Any]:
        context = await self._regional_service.infer_regional_context(
            state["region"].country_code,
            industry=state.get("industry"),
            brand_name=state.get("brand_name"),
            target_audience=state.get("target_audience"),
        )
        return {"regional_context": context}

    @track_timing
    async def _fetch_knowledge_node(self, state: ProfileStateDict) -> dict[str, Any]:
        """Node 5: Encyclopedia summary shared by competitor and product stages."""
        summary = await self._knowledge.fetch_summary(f"{state['brand_name']} company")
        return {"knowledge_summary": summary.summary if summary and summary.summary else None}

    @track_timing
    async def _resolve_competitors_node(self, state: ProfileStateDict) -> dict[str, Any]:
        """Node 6: Caller-supplied competitors win over inference."""
        supplied = competitors_from_caller(state["params"].competitors)
        if supplied:
            logger.info("Using caller-supplied competitors", count=len(supplied))
            return {
                "competitors": CompetitorInferenceResult(
                    competitors=supplied,
                    market_context="",
                    source=CompetitorSource.LLMO,
                ),
            }

        result = await self._competitor_service.infer_competitors(
            state["brand_name"],
            industry=state.get("industry"),
            wikipedia_summary=state.get("knowledge_summary"),
            country_code=state["region"].country_code,
        )
        return {"competitors": result}

    @track_timing
    async def _infer_personas_node(self, state: ProfileStateDict) -> dict[str, Any]:
        result = await self._persona_service.infer_personas(
            state["brand_name"],
            industry=state.get("industry"),
            target_audience=state.get("target_audience"),
            competitors=state["competitors"].competitors,
            country_code=state["region"].country_code,
        )
        return {"personas": result}

    @track_timing
    async def _extract_products_node(self, state: ProfileStateDict) -> dict[str, Any]:
        """Node 8: Sitemap tier when a sitemap is supplied, else graph + encyclopedia."""
        sitemap_url = state["params"].sitemap_url
        if sitemap_url:
            result = await self._product_extractor.extract_from_sitemap(sitemap_url, state["brand_name"])
        else:
            result = await self._product_extractor.extract_products(
                state["brand_name"],
                wikipedia_summary=state.get("knowledge_summary"),
            )
        return {"products": result}

    @track_timing
    async def _assemble_profile_node(self, state: ProfileStateDict) -> dict[str, Any]:
        """Node 9: Freeze every stage output into one BrandProfile."""
        region = state["region"]
        context = state["regional_context"]
        competitors = state["competitors"]
        personas = state["personas"]
        products = state["products"]

        profile = BrandProfile(
            base_profile=state.get("base_profile") or {},
            country_code=region.country_code,
            region_confidence=region.confidence,
            region_detection_method=region.detection_method,
            region_reasoning=region.reasoning,
            languages=context.languages,
            primary_language=context.primary_language,
            regulatory_context=context.regulatory_context,
            key_terminology=context.key_terminology,
            market_specifics=context.market_specifics,
            currency=context.currency,
            business_model=context.business_model,
            competitors=competitors.competitors,
            competitors_source=competitors.source,
            market_context=competitors.market_context,
            personas=personas.personas,
            personas_source=personas.source,
            products=ProductsCatalogue.from_extraction(products),
            products_metadata=products.metadata,
        )

        logger.info(
            "Profile assembled",
            country_code=profile.country_code,
            competitors=len(profile.competitors),
            competitors_source=profile.competitors_source,
            personas=len(profile.personas),
            personas_source=profile.personas_source,
            products_source=profile.products_metadata.source,
        )
        return {"profile_document": profile.to_document()}

    # =========================================================================
    # Public API
    # =========================================================================

    async def run(
        self,
        base_url: Any,
        params: Optional[Mapping[str, Any]] = None,
        run_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Build a brand profile for a website.

        Args:
            base_url: Site address (http or https)
            params: Caller options: ``enhance``, ``sitemapUrl``, ``competitors``;
                every key is forwarded to the base-profile prompt
            run_id: Optional run ID for log correlation

        Returns:
            The base profile when ``enhance`` is false, else the enriched
            profile document

        Raises:
            InputError: If ``base_url`` is missing or invalid, or ``params``
                is malformed
            ModelOutputError: If the base profile is not a JSON object
            PipelineError: On any other unexpected failure
        """
        base_url = self.validator.validate_base_url(base_url)
        raw_params, pipeline_params = self.validator.validate_params(params)
        run_id = run_id or str(uuid4())

        self._initialize_services()

        initial_state: ProfileStateDict = {
            "run_id": run_id,
            "base_url": base_url,
            "params": pipeline_params,
            "raw_params": raw_params,
            "step_timings": {},
        }

        with LogContext(run_id=run_id, base_url=base_url):
            logger.info("Starting profile run", enhance=pipeline_params.enhance)
            try:
                final_state = await self._graph.ainvoke(initial_state)
            except AppError:
                raise
            except Exception as e:
                logger.error("Profile run failed with unexpected error", error=str(e))
                raise PipelineError(
                    f"Unexpected pipeline error: {e}",
                    details={"run_id": run_id, "base_url": base_url},
                ) from e

            logger.info(
                "Profile run complete",
                enhanced=pipeline_params.enhance,
                duration_ms=sum((final_state.get("step_timings") or {}).values()),
            )
            return final_state["profile_document"]

    async def run_context(self, context: Mapping[str, Any]) -> dict[str, Any]:
        """Run from a ``{"baseURL": ..., "params": {...}}`` mapping."""
        return await self.run(context.get("baseURL"), context.get("params"))

    # =========================================================================
    # Cleanup
    # =========================================================================

    async def close(self) -> None:
        """Close clients this pipeline created."""
        try:
            if self._owned_llm:
                await self._owned_llm.close()
            if self._owned_http:
                await self._owned_http.disconnect()
        except Exception as e:
            logger.warning("Error closing services", error=str(e))


# =============================================================================
# Convenience Functions
# =============================================================================

async def build_brand_profile(
    base_url: str,
    params: Optional[Mapping[str, Any]] = None,
    settings: Optional[Settings] = None,
) -> dict[str, Any]:
    """
    Convenience function to build one brand profile.

    Example:
        >>> document = await build_brand_profile("https://acme.de")
        >>> document["currency"]
        'EUR'
    """
    async with BrandProfilePipeline(settings=settings) as pipeline:
        return await pipeline.run(base_url, params)
