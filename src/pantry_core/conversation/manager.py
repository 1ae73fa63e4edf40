"""
Conversation Manager

Orchestrates one utterance end to end:

1. Load or create the conversation context (live table -> state store -> new)
2. Detect the language and update the preferred language when confident
3. If a clarification is pending, treat the utterance as the reply:
   combine it with the original input and re-run understanding
4. Otherwise classify, extract and check whether clarification is needed
5. Route to a worker agent
6. Record the turn, merge entities and persist the context

Clarification dialog per conversation:

    no request --(needs clarification)--> pending(attempts=1)
    pending --(reply resolves)--> route combined text, drop request
    pending --(reply unresolved, attempts < max)--> pending(attempts+1)
    pending --(reply unresolved, attempts >= max)--> best-effort route, drop request

process() never raises; unexpected failures produce a degraded result routed
to the fallback agent.
"""
from typing import Any, Dict, List, Optional
import logging
import time

from pantry_nlu.classification import IntentClassifier
from pantry_nlu.clarification import ClarificationEngine
from pantry_nlu.config import NLUConfig
from pantry_nlu.data_types import (
    ClarificationAnalysis,
    Entities,
    EntityResult,
    IntentResult,
    LanguageDetection,
)
from pantry_nlu.extraction import EntityExtractor
from pantry_nlu.language import LanguageDetector
from pantry_nlu.logging_config import log_function_call

from ..agents.base import AgentType
from ..config import CoreConfig
from ..contracts.result import FailureKind, StageResult, run_stage
from ..routing.agent_router import AgentRouter
from ..routing.models import RoutingContext, RoutingResult
from ..state.models import ClarificationRequest, ConversationContext, ConversationTurn, new_id, utcnow
from ..state.store import StateStore
from ..state.tables import InMemoryTable, KeyValueTable
from .models import ConversationResult

logger = logging.getLogger(__name__)

DEGRADED_CONFIDENCE = 0.2


class ConversationManager:
    """
    Entry point for conversational turns.

    Example:
        >>> manager = ConversationManager(AgentRouter())
        >>> result = await manager.process("抽纸消耗1包", "conv-1", "user-1")
        >>> result.target_agent
        'inventory'
    """

    def __init__(
        self,
        router: AgentRouter,
        store: Optional[StateStore] = None,
        config: Optional[CoreConfig] = None,
        nlu_config: Optional[NLUConfig] = None,
        classifier: Optional[IntentClassifier] = None,
        extractor: Optional[EntityExtractor] = None,
        clarifier: Optional[ClarificationEngine] = None,
        language_detector: Optional[LanguageDetector] = None,
        context_table: Optional[KeyValueTable[ConversationContext]] = None,
        clarification_table: Optional[KeyValueTable[ClarificationRequest]] = None,
    ):
        self.router = router
        self.store = store
        self.config = config or CoreConfig()
        self.nlu_config = nlu_config or NLUConfig()

        self.extractor = extractor or EntityExtractor(self.nlu_config)
        self.classifier = classifier or IntentClassifier(self.nlu_config, extractor=self.extractor)
        self.clarifier = clarifier or ClarificationEngine(self.nlu_config)
        self.language_detector = language_detector or LanguageDetector(self.nlu_config)

        self.contexts: KeyValueTable[ConversationContext] = (
            context_table if context_table is not None else InMemoryTable()
        )
        self.pending: KeyValueTable[ClarificationRequest] = (
            clarification_table if clarification_table is not None else InMemoryTable()
        )

        self._stats: Dict[str, int] = {
            'total_messages': 0,
            'clarifications_requested': 0,
            'clarifications_resolved': 0,
            'forced_routings': 0,
            'degraded_stages': 0,
            'errors': 0,
        }

        logger.info("ConversationManager initialized", extra={
            'max_context_history': self.config.MAX_CONTEXT_HISTORY,
            'max_clarification_attempts': self.config.MAX_CLARIFICATION_ATTEMPTS,
            'multilingual': self.config.ENABLE_MULTILINGUAL,
        })

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    @log_function_call(level='INFO', log_result=False)
    async def process(self, utterance: str, conversation_id: str, user_id: str) -> ConversationResult:
        """
        Process one utterance.

        Args:
            utterance: Raw user text
            conversation_id: Conversation key
            user_id: User the conversation belongs to

        Returns:
            ConversationResult (never raises)
        """
        start = time.perf_counter()
        self._stats['total_messages'] += 1
        try:
            result = await self._process(utterance or "", conversation_id, user_id)
        except Exception as e:
            self._stats['errors'] += 1
            logger.error(
                f"Failed to process message for conversation {conversation_id}: {e}",
                extra={'conversation_id': conversation_id, 'user_id': user_id,
                       'error_type': type(e).__name__},
                exc_info=True,
            )
            result = self._degraded(conversation_id, e)
        result.processing_time_ms = round((time.perf_counter() - start) * 1000, 2)
        return result

    process_message = process

    async def _process(self, utterance: str, conversation_id: str, user_id: str) -> ConversationResult:
        context = await self._load_or_create_context(conversation_id, user_id)
        detection = self._update_language(context, utterance)
        language = self._response_language(context)

        pending = await self.pending.get(conversation_id)
        if pending is not None:
            return await self._handle_reply(context, pending, utterance, detection, language)

        intent_result, entity_result, analysis = self._understand(utterance, context, language)

        if analysis.needs_clarification:
            request = self._new_request(analysis, utterance, language)
            await self._ask(context, request)
            logger.info(
                f"Clarification requested: {analysis.reason}",
                extra={'conversation_id': conversation_id, 'guidance_type': analysis.guidance_type.value,
                       'missing_entities': analysis.missing_entities}
            )
            return self._clarification_result(context, request, intent_result, entity_result,
                                              detection, language)

        routing = await self._route(utterance, context, intent_result, entity_result.entities, language)
        await self._record_turn(context, utterance, intent_result, entity_result.entities, routing)
        return ConversationResult(
            success=True,
            conversation_id=conversation_id,
            routing_result=routing,
            intent_result=intent_result,
            entity_result=entity_result,
            language_detection=detection,
            response_language=language,
        )

    async def _handle_reply(
        self,
        context: ConversationContext,
        request: ClarificationRequest,
        utterance: str,
        detection: Optional[LanguageDetection],
        language: str,
    ) -> ConversationResult:
        conversation_id = context.conversation_id
        combined = f"{request.original_input} {utterance}".strip()
        intent_result, entity_result, analysis = self._understand(combined, context, language)

        metadata: Dict[str, Any] = {'clarification_attempts': request.attempts}
        if not analysis.needs_clarification:
            self._stats['clarifications_resolved'] += 1
            metadata['clarification_resolved'] = True
        elif request.exhausted:
            self._stats['forced_routings'] += 1
            metadata['clarification_exhausted'] = True
            metadata['forced_routing'] = True
            logger.warning(
                "Clarification attempts exhausted, routing best effort",
                extra={'conversation_id': conversation_id, 'attempts': request.attempts}
            )
        else:
            follow_up = self._new_request(
                analysis, combined, language,
                attempts=request.attempts + 1, request_id=request.request_id,
            )
            await self._ask(context, follow_up)
            return self._clarification_result(context, follow_up, intent_result, entity_result,
                                              detection, language)

        await self.pending.delete(conversation_id)
        routing = await self._route(combined, context, intent_result, entity_result.entities, language)
        await self._record_turn(context, combined, intent_result, entity_result.entities, routing)
        return ConversationResult(
            success=True,
            conversation_id=conversation_id,
            routing_result=routing,
            intent_result=intent_result,
            entity_result=entity_result,
            language_detection=detection,
            response_language=language,
            metadata=metadata,
        )

    def _understand(self, text: str, context: ConversationContext, language: str):
        """Classify, extract and analyze one text. Each stage degrades independently."""
        intent_stage: StageResult[IntentResult] = run_stage(
            lambda: self.classifier.classify(text, context.contextual_info),
            FailureKind.CLASSIFICATION,
            lambda: IntentResult(self.classifier.fallback_intent, 0.3,
                                 reasoning="Classification unavailable"),
        )
        entity_stage: StageResult[EntityResult] = run_stage(
            lambda: self.extractor.extract(text),
            FailureKind.EXTRACTION,
            lambda: EntityResult(Entities(), confidence=0.5),
        )
        analysis_stage: StageResult[ClarificationAnalysis] = run_stage(
            lambda: self.clarifier.analyze(text, intent_stage.value, entity_stage.value,
                                           context.contextual_info, language),
            FailureKind.CLARIFICATION,
            lambda: ClarificationAnalysis(needs_clarification=False, reason="Clarification unavailable"),
        )
        for stage in (intent_stage, entity_stage, analysis_stage):
            self._note_degraded(stage, context.conversation_id)
        return intent_stage.value, entity_stage.value, analysis_stage.value

    def _note_degraded(self, stage: StageResult, conversation_id: str) -> None:
        if stage.ok:
            return
        self._stats['degraded_stages'] += 1
        logger.warning(
            f"Stage degraded: {stage.failure.value}",
            extra={'conversation_id': conversation_id, 'failure': stage.failure.value,
                   'error_message': stage.error}
        )

    def _new_request(
        self,
        analysis: ClarificationAnalysis,
        original_input: str,
        language: str,
        attempts: int = 1,
        request_id: Optional[str] = None,
    ) -> ClarificationRequest:
        request = ClarificationRequest(
            question=self.clarifier.build_question(analysis, language),
            guidance_type=analysis.guidance_type,
            original_input=original_input,
            attempts=attempts,
            max_attempts=self.config.MAX_CLARIFICATION_ATTEMPTS,
            missing_entities=list(analysis.missing_entities),
            suggested_responses=self.clarifier.suggest_responses(analysis, language),
            expected_entity_type=analysis.missing_entities[0] if analysis.missing_entities else "general",
            reason=analysis.reason,
        )
        if request_id is not None:
            request.request_id = request_id
        return request

    async def _ask(self, context: ConversationContext, request: ClarificationRequest) -> None:
        if request.attempts == 1:
            self._stats['clarifications_requested'] += 1
        await self.pending.set(context.conversation_id, request)
        context.last_activity = utcnow()
        await self._save_context(context)

    def _clarification_result(
        self,
        context: ConversationContext,
        request: ClarificationRequest,
        intent_result: IntentResult,
        entity_result: EntityResult,
        detection: Optional[LanguageDetection],
        language: str,
    ) -> ConversationResult:
        return ConversationResult(
            success=True,
            conversation_id=context.conversation_id,
            intent_result=intent_result,
            entity_result=entity_result,
            requires_clarification=True,
            clarification_request=request,
            language_detection=detection,
            response_language=language,
            metadata={'clarification_attempts': request.attempts},
        )

    async def _route(
        self,
        text: str,
        context: ConversationContext,
        intent_result: IntentResult,
        entities: Entities,
        language: str,
    ) -> RoutingResult:
        routing_context = RoutingContext(
            conversation_id=context.conversation_id,
            user_id=context.user_id,
            session_history=list(context.session_history),
            current_context={
                'intent': intent_result.intent,
                'confidence': intent_result.confidence,
                'entities': entities,
                'language': language,
                'last_intent': context.current_intent,
            },
            user_preferences=dict(context.user_preferences),
        )
        try:
            return await self.router.route(text, routing_context)
        except Exception as e:
            stage = StageResult.fallback(self._fallback_routing(e), FailureKind.ROUTING, e)
            self._note_degraded(stage, context.conversation_id)
            return stage.value

    async def _record_turn(
        self,
        context: ConversationContext,
        text: str,
        intent_result: IntentResult,
        entities: Entities,
        routing: RoutingResult,
    ) -> None:
        turn = ConversationTurn(
            turn_id=new_id(),
            user_input=text,
            intent=intent_result.intent,
            agent_id=routing.target_agent.value,
            entities=entities,
        )
        context.append_turn(turn, self.config.MAX_CONTEXT_HISTORY)
        context.current_intent = intent_result.intent
        context.entities = context.entities.merge(entities)
        context.last_activity = turn.timestamp
        context.contextual_info.update({
            'last_intent': intent_result.intent,
            'last_entities': entities.to_dict(),
            'last_routing_result': routing.to_dict(),
        })
        await self._save_context(context)

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    async def _load_or_create_context(self, conversation_id: str, user_id: str) -> ConversationContext:
        context = await self.get_conversation_context(conversation_id)
        if context is not None:
            return context

        context = ConversationContext(conversation_id=conversation_id, user_id=user_id)
        logger.info(f"Created conversation {conversation_id}",
                    extra={'conversation_id': conversation_id, 'user_id': user_id})
        await self.contexts.set(conversation_id, context)
        return context

    async def get_conversation_context(self, conversation_id: str) -> Optional[ConversationContext]:
        """Live context, else the persisted one (which becomes live)."""
        context = await self.contexts.get(conversation_id)
        if context is not None:
            return context
        if self.store is None:
            return None
        context = await self.store.load_conversation_state(conversation_id)
        if context is not None:
            await self.contexts.set(conversation_id, context)
        return context

    async def _save_context(self, context: ConversationContext) -> None:
        context.contextual_info['preferred_language'] = context.preferred_language
        context.contextual_info['detected_language'] = context.detected_language
        await self.contexts.set(context.conversation_id, context)
        if self.store is not None:
            await self.store.save_conversation_state(context.conversation_id, context)

    async def clear_conversation_context(self, conversation_id: str) -> None:
        """Drop the live context, any pending clarification, routing memory and the persisted record."""
        await self.contexts.delete(conversation_id)
        await self.pending.delete(conversation_id)
        await self.router.forget(conversation_id)
        if self.store is not None:
            await self.store.delete_conversation_state(conversation_id)
        logger.info(f"Cleared conversation {conversation_id}", extra={'conversation_id': conversation_id})

    # ------------------------------------------------------------------
    # Clarification
    # ------------------------------------------------------------------

    async def get_pending_clarification(self, conversation_id: str) -> Optional[ClarificationRequest]:
        return await self.pending.get(conversation_id)

    async def cancel_clarification_request(self, conversation_id: str) -> bool:
        """
        Drop the pending clarification so the next utterance starts fresh.

        Returns:
            True if a request was pending
        """
        if await self.pending.get(conversation_id) is None:
            return False
        await self.pending.delete(conversation_id)
        logger.info("Clarification request cancelled", extra={'conversation_id': conversation_id})
        return True

    # ------------------------------------------------------------------
    # Language
    # ------------------------------------------------------------------

    def _update_language(self, context: ConversationContext, utterance: str) -> Optional[LanguageDetection]:
        if not self.config.ENABLE_MULTILINGUAL:
            return None
        stage = run_stage(
            lambda: self.language_detector.detect(utterance),
            FailureKind.INTERNAL,
            lambda: None,
        )
        self._note_degraded(stage, context.conversation_id)
        detection = stage.value
        if detection is None:
            return None

        context.detected_language = detection.language
        if context.preferred_language is None or detection.confidence > self.config.LANGUAGE_UPDATE_CONFIDENCE:
            context.preferred_language = detection.language
        return detection

    def _response_language(self, context: ConversationContext) -> str:
        return context.preferred_language or self.nlu_config.DEFAULT_LANGUAGE

    def detect_language(self, text: str) -> LanguageDetection:
        return self.language_detector.detect(text)

    def get_supported_languages(self) -> List[str]:
        return self.language_detector.supported_languages

    async def get_preferred_language(self, conversation_id: str) -> str:
        context = await self.get_conversation_context(conversation_id)
        if context is None:
            return self.nlu_config.DEFAULT_LANGUAGE
        return self._response_language(context)

    async def set_preferred_language(self, conversation_id: str, language: str, user_id: str = "") -> bool:
        """
        Pin the response language for a conversation.

        Returns:
            False if the language is not supported
        """
        if not self.language_detector.is_supported(language):
            logger.warning(f"Unsupported language: {language}",
                           extra={'conversation_id': conversation_id, 'language': language})
            return False
        context = await self._load_or_create_context(conversation_id, user_id)
        context.preferred_language = language
        await self._save_context(context)
        return True

    # ------------------------------------------------------------------
    # Stats / lifecycle
    # ------------------------------------------------------------------

    async def get_conversation_stats(self) -> Dict[str, Any]:
        """
        Counters since start-up plus live table sizes and routing stats.
        """
        return {
            'active_conversations': len(await self.contexts.keys()),
            'pending_clarifications': len(await self.pending.keys()),
            **self._stats,
            'routing': self.router.get_routing_stats(),
        }

    def _fallback_routing(self, error: Exception) -> RoutingResult:
        return RoutingResult(
            target_agent=AgentType(self.config.FALLBACK_AGENT),
            confidence=DEGRADED_CONFIDENCE,
            reasoning=f"Processing error, using fallback agent: {error}",
        )

    def _degraded(self, conversation_id: str, error: Exception) -> ConversationResult:
        return ConversationResult(
            success=False,
            conversation_id=conversation_id,
            routing_result=self._fallback_routing(error),
            error=f"{type(error).__name__}: {error}",
            metadata={'failure': FailureKind.INTERNAL.value},
        )

    async def shutdown(self) -> None:
        stats = await self.get_conversation_stats()
        logger.info("ConversationManager shutting down",
                    extra={k: v for k, v in stats.items() if k != 'routing'})
        await self.router.shutdown()
